import logging

import pytest

from mips_datapath.backend.assembler import assemble_source
from mips_datapath.backend.cpu_model import CPUModel
from mips_datapath.backend.executor import Executor


def build_cpu(source, data=None, data_words=256):
    cpu = CPUModel(data_words=data_words)
    cpu.reset(program=assemble_source(source), initial_memory=data)
    return cpu


@pytest.fixture
def run_asm():
    """Assembles, loads and runs a program; returns (cpu, result)."""
    def _run(source, data=None, data_words=256, max_cycles=1000):
        cpu = build_cpu(source, data, data_words)
        result = Executor(cpu, max_cycles=max_cycles).run()
        return cpu, result
    return _run


@pytest.fixture(autouse=True)
def reset_simulator_loggers():
    yield
    for name in ('mips.clean', 'mips.raw'):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
