import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Union

from mips_datapath.backend.schemes import DEFAULT_DATA_WORDS
from mips_datapath.backend.executor import DEFAULT_MAX_CYCLES


class ConfigError(Exception):
    """Malformed simulator configuration file."""
    pass


@dataclass(frozen=True)
class SimulatorConfig:
    data_words: int = DEFAULT_DATA_WORDS
    max_cycles: int = DEFAULT_MAX_CYCLES
    entry_point: int = 0
    little_endian: bool = True
    programs_dir: str = "mips_programs"
    data_dir: str = "mips_data"

    def __post_init__(self):
        for name in ('data_words', 'max_cycles', 'entry_point'):
            value = getattr(self, name)
            # bool is an int subclass
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
        if not isinstance(self.little_endian, bool):
            raise ConfigError(f"little_endian must be true or false, got {self.little_endian!r}")
        for name in ('programs_dir', 'data_dir'):
            if not isinstance(getattr(self, name), str):
                raise ConfigError(f"{name} must be a string, got {getattr(self, name)!r}")

        if self.data_words <= 0:
            raise ConfigError(f"data_words must be positive, got {self.data_words}")
        if self.max_cycles <= 0:
            raise ConfigError(f"max_cycles must be positive, got {self.max_cycles}")
        if self.entry_point % 4 != 0 or self.entry_point < 0:
            raise ConfigError(f"entry_point must be a non-negative multiple of 4, got {self.entry_point}")

    def override(self, **values) -> "SimulatorConfig":
        """Returns a copy with every non-None value replaced."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})


def load_config(path: Union[str, Path]) -> SimulatorConfig:
    """Reads a JSON object whose keys are SimulatorConfig field names."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            cfg = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(cfg, dict):
        raise ConfigError(f"Config {path} must contain a JSON object")

    known = {f.name for f in fields(SimulatorConfig)}
    unknown = set(cfg) - known
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")
    return SimulatorConfig(**cfg)
