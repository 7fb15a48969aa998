from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from mips_datapath.backend.schemes import AtomicMemTransaction, CycleTrace, RegisterFile, WORD_SIZE_BYTES
from mips_datapath.backend.instructions import reg_name
from mips_datapath.backend.cpu_model import CPUModel
from mips_datapath.backend.executor import ExecutionResult, Executor
from mips_datapath.config import SimulatorConfig
# Main App section

@dataclass
class AppState:
    config: SimulatorConfig = field(default_factory=SimulatorConfig)
    last_loaded_program: str = ""
    last_loaded_data: str = ""

    def is_ready_for_execution(self):
        return bool(self.last_loaded_program)

app_state = AppState()


# Program Load Section

class LoadedProgramState:
    def __init__(self):
        self.filename = ""
        self.content = "# Select a file or type assembly here"
        self.ready = False
        self.machine_code: Optional[List[int]] = None

loaded_program_state = LoadedProgramState()


# Data Load Section

class DataMemoryState:
    def __init__(self):
        self.filename = ""
        self.words: List[int] = []
        self.view_format = 'HEX'    # 'HEX', 'DEC', 'BIN'

    def get_formatted_data(self) -> List[Dict[str, str]]:
        """Generates row data for the AG Grid based on current format."""
        rows = []
        for index, val in enumerate(self.words):
            if self.view_format == 'HEX':
                data_str = f"0x{val:08X}"
            elif self.view_format == 'BIN':
                data_str = f"{val:032b}"
            else: # DEC
                data_str = f"{val}"
            rows.append({'address': f"0x{index * WORD_SIZE_BYTES:08X}", 'data': data_str})
        return rows

data_state = DataMemoryState()


# Step By Step Execution Section

class StepByStepExecutionState:
    """Holds the simulator instance driven by the step debugger page."""

    def __init__(self):
        self.cpu: Optional[CPUModel] = None
        self.executor: Optional[Executor] = None
        self.trace: Optional[CycleTrace] = None
        self.changed_reg: Optional[Tuple[str, str]] = None
        self.atomic_mem_transaction: Optional[AtomicMemTransaction] = None

    @property
    def current_step(self) -> int:
        return self.cpu.cycle_count if self.cpu else 0

    @property
    def started(self) -> bool:
        return self.executor is not None

    @property
    def halted(self) -> bool:
        return self.executor is not None and self.executor.halted

    @property
    def result(self) -> Optional[ExecutionResult]:
        return self.executor.result if self.executor else None

    def start(self, program: List[int], data: Optional[List[int]], config: SimulatorConfig):
        self.cpu = CPUModel(data_words=config.data_words)
        self.cpu.reset(program=program, initial_memory=data, entry_point=config.entry_point)
        self.executor = Executor(self.cpu, max_cycles=config.max_cycles)
        self.trace = None
        self.changed_reg = None
        self.atomic_mem_transaction = None

    def reset(self):
        self.cpu = None
        self.executor = None
        self.trace = None
        self.changed_reg = None
        self.atomic_mem_transaction = None

    def update_step(self, trace: CycleTrace, previous: RegisterFile):
        # Determine register changes
        self.changed_reg = None
        for i, (old_val, new_val) in enumerate(zip(previous.snapshot(), self.cpu.registers.snapshot())):
            if old_val != new_val:
                self.changed_reg = (reg_name(i), f"changed from 0x{old_val:08X} to 0x{new_val:08X}")
                break
        self.trace = trace
        self.atomic_mem_transaction = trace.transaction if trace.transaction.occurred else None

    def step(self) -> Optional[CycleTrace]:
        """Executes one cycle. Returns None once the program has halted."""
        if self.executor is None:
            raise RuntimeError("No program loaded")
        previous = self.cpu.registers.copy()
        trace = self.executor.step()
        if trace is not None:
            self.update_step(trace, previous)
        return trace

    def run(self) -> ExecutionResult:
        """Steps until the program halts, keeping only the final cycle's view."""
        while self.step() is not None:
            pass
        return self.executor.result

step_by_step_state = StepByStepExecutionState()
