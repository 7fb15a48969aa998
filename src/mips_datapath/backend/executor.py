import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from mips_datapath.backend.schemes import (
    CycleTrace,
    RegisterFile,
    REGISTER_COUNT,
)
from mips_datapath.backend.instructions import extract_instruction_fields
from mips_datapath.backend.control import fill_cpu_control
from mips_datapath.backend.cpu_model import (
    CPUModel,
    execute_alu,
    execute_mem,
    execute_update_regs,
    get_alu_input1,
    get_alu_input2,
    get_instruction,
    get_next_pc,
)

clean_out = logging.getLogger('mips.clean')
raw_out = logging.getLogger('mips.raw')

DEFAULT_MAX_CYCLES = 100000


class DecodeError(Exception):
    """The control unit rejected the fetched word."""

    def __init__(self, pc: int, word: int):
        self.pc = pc
        self.word = word
        super().__init__(f"Undecodable instruction 0x{word:08X} at PC 0x{pc:08X}")


class HaltReason(Enum):
    DECODE_FAILURE = 0
    PC_OUT_OF_RANGE = 1
    CYCLE_LIMIT = 2

    def __str__(self):
        if self == HaltReason.DECODE_FAILURE:
            return "Halted on an undecodable instruction"
        elif self == HaltReason.PC_OUT_OF_RANGE:
            return "Halted: PC left the program image"
        elif self == HaltReason.CYCLE_LIMIT:
            return "Stopped: cycle limit reached"
        else:
            return "UNKNOWN"


@dataclass(frozen=True)
class ExecutionResult:
    halt_reason: HaltReason
    cycles: int
    pc: int
    last_trace: Optional[CycleTrace] = None
    error: Optional[Exception] = None

    def __str__(self):
        return f"{self.halt_reason} after {self.cycles} cycles (PC 0x{self.pc:08X})"


def execute_cycle(cpu: CPUModel) -> CycleTrace:
    """
    Runs one full clock cycle against `cpu` and commits its results.
    Raises DecodeError before touching any state if the word does not decode.
    """
    pc = cpu.pc

    # 1. Fetch and decode
    word = get_instruction(pc, cpu.instruction_memory)
    fields = extract_instruction_fields(word)
    control, decoded = fill_cpu_control(fields)
    if not decoded:
        raise DecodeError(pc, word)

    # 2. Register read
    rs_val = cpu.registers.read(fields.rs)
    rt_val = cpu.registers.read(fields.rt)

    # 3. Execute
    alu_input1 = get_alu_input1(control, fields, rs_val, rt_val, pc)
    alu_input2 = get_alu_input2(control, fields, rs_val, rt_val, pc)
    alu_result = execute_alu(control, alu_input1, alu_input2)

    # 4. Memory
    mem_result = execute_mem(control, alu_result, rt_val, cpu.data_memory)

    # 5. Next PC and write back, independent of each other
    next_pc = get_next_pc(fields, control, alu_result.zero, pc)
    written = execute_update_regs(fields, control, alu_result, mem_result, cpu.registers)

    trace = CycleTrace(
        cycle=cpu.cycle_count,
        pc=pc,
        word=word,
        fields=fields,
        control=control,
        alu_input1=alu_input1,
        alu_input2=alu_input2,
        alu_result=alu_result,
        mem_result=mem_result,
        transaction=mem_result.transaction,
        written_register=written,
        next_pc=next_pc,
    )

    cpu.pc = next_pc
    cpu.cycle_count += 1
    return trace


class Executor:
    """Driving loop around one CPUModel."""

    def __init__(self, cpu: CPUModel, max_cycles: int = DEFAULT_MAX_CYCLES):
        self.cpu = cpu
        self.max_cycles = max_cycles
        self.last_register_file: Optional[RegisterFile] = cpu.registers.copy()
        self.last_trace: Optional[CycleTrace] = None
        self.result: Optional[ExecutionResult] = None

    @property
    def halted(self) -> bool:
        return self.result is not None

    def list_only_diffs(self, current_rf: RegisterFile) -> str:
        """Compares current register file to last logged one and lists only differences."""
        if self.last_register_file is None:
            return str(current_rf)

        output = []
        for i in range(REGISTER_COUNT):
            old_val = self.last_register_file.read(i)
            new_val = current_rf.read(i)
            if old_val != new_val:
                output.append(f"${i:02}: 0x{old_val:08X} -> 0x{new_val:08X}")

        if not output:
            return "No changes in Register File."
        return "\n".join(output)

    def log_cycle(self, trace: CycleTrace):
        raw_out.info(f"0x{trace.pc:08X} << {trace.word:08X}")
        if not clean_out.isEnabledFor(logging.INFO):
            return
        clean_out.info(str(trace))
        if trace.written_register is not None:
            clean_out.info(self.list_only_diffs(self.cpu.registers))
            self.last_register_file = self.cpu.registers.copy()

    def _halt(self, reason: HaltReason, error: Optional[Exception] = None) -> ExecutionResult:
        self.result = ExecutionResult(
            halt_reason=reason,
            cycles=self.cpu.cycle_count,
            pc=self.cpu.pc,
            last_trace=self.last_trace,
            error=error,
        )
        if reason == HaltReason.CYCLE_LIMIT:
            clean_out.warning(f"{self.result}")
        else:
            clean_out.info(f"{self.result}")
            if error is not None:
                clean_out.info(f"  {error}")
        return self.result

    def step(self) -> Optional[CycleTrace]:
        """
        Executes one cycle. Returns None once the program has halted; the
        reason is then available in `result`.
        """
        if self.halted:
            return None
        if self.cpu.cycle_count >= self.max_cycles:
            self._halt(HaltReason.CYCLE_LIMIT)
            return None
        if not self.cpu.instruction_memory.contains(self.cpu.pc):
            self._halt(HaltReason.PC_OUT_OF_RANGE)
            return None

        try:
            trace = execute_cycle(self.cpu)
        except DecodeError as e:
            self._halt(HaltReason.DECODE_FAILURE, e)
            return None

        self.last_trace = trace
        self.log_cycle(trace)
        return trace

    def run(self) -> ExecutionResult:
        clean_out.info(f"Running from PC 0x{self.cpu.pc:08X} "
                       f"({len(self.cpu.instruction_memory)} instruction words, limit {self.max_cycles} cycles)")
        while not self.halted:
            self.step()
        return self.result

    def traces(self) -> List[CycleTrace]:
        """Runs to completion, collecting every cycle."""
        collected = []
        while True:
            trace = self.step()
            if trace is None:
                return collected
            collected.append(trace)
