from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from mips_datapath.backend.schemes import (
    WORD_MASK,
    WORD_SIZE_BYTES,
    DEFAULT_DATA_WORDS,
    AluOp,
    AluResult,
    ControlSignals,
    CycleTrace,
    DataMemory,
    InstructionMemory,
    MemResult,
    NO_TRANSACTION,
    RegisterFile,
    to_signed,
)
from mips_datapath.backend.instructions import InstructionFields

JUMP_REGION_MASK = 0xF0000000
JUMP_TARGET_MASK = 0x0FFFFFFF
SHIFT_AMOUNT_MASK = 0x1F


# --- Fetch ---

def get_instruction(pc: int, instruction_memory: InstructionMemory) -> int:
    # PC is a byte address
    return instruction_memory.read_word(pc // WORD_SIZE_BYTES)


# --- ALU input selectors ---

def get_alu_input1(control: ControlSignals, fields: InstructionFields,
                   rs_val: int, rt_val: int, pc: int) -> int:
    if control.upper_immediate:
        return 0
    # sll shifts rt, not rs
    if control.alu_op is AluOp.SLL:
        return rt_val & WORD_MASK
    return rs_val & WORD_MASK


def get_alu_input2(control: ControlSignals, fields: InstructionFields,
                   rs_val: int, rt_val: int, pc: int) -> int:
    if control.alu_op is AluOp.SLL:
        return fields.shamt
    if control.upper_immediate:
        return (fields.imm16 << 16) & WORD_MASK
    return fields.imm32 if control.alu_src else rt_val & WORD_MASK


# --- ALU ---

def execute_alu(control: ControlSignals, input1: int, input2: int) -> AluResult:
    """
    b_negate turns the second operand into its two's complement before it is
    combined, which is how sub, beq/bne and slt are realised with the adder.
    Negating 0x80000000 wraps back to 0x80000000.
    slt compares the operands as given, sll uses input2 before negation.
    An unknown operation produces 0.
    """
    input1 &= WORD_MASK
    input2 &= WORD_MASK
    operand2 = (-input2) & WORD_MASK if control.b_negate else input2

    op = control.alu_op
    if op is AluOp.AND:
        result = input1 & operand2
    elif op is AluOp.OR:
        result = input1 | operand2
    elif op is AluOp.ADD:
        result = (input1 + operand2) & WORD_MASK
    elif op is AluOp.SLT:
        result = 1 if to_signed(input1) < to_signed(input2) else 0
    elif op is AluOp.XOR:
        result = input1 ^ operand2
    elif op is AluOp.SLL:
        result = (input1 << (input2 & SHIFT_AMOUNT_MASK)) & WORD_MASK
    else:
        result = 0

    return AluResult(result=result, zero=(result == 0))


# --- Memory stage ---

def execute_mem(control: ControlSignals, alu_result: AluResult,
                rt_val: int, memory: DataMemory) -> MemResult:
    # ALU result is a byte address
    index = alu_result.result // WORD_SIZE_BYTES

    read_val = memory.read_word(index) if control.mem_read else 0
    transaction = NO_TRANSACTION
    if control.mem_write:
        transaction = memory.write_word(index, rt_val)
    return MemResult(read_val=read_val, transaction=transaction)


# --- Next PC ---

def get_next_pc(fields: InstructionFields, control: ControlSignals,
                alu_zero: bool, pc: int) -> int:
    pc_plus_4 = (pc + 4) & WORD_MASK

    if control.jump:
        return (pc_plus_4 & JUMP_REGION_MASK) | ((fields.address << 2) & JUMP_TARGET_MASK)

    if control.branch:
        if control.not_equal:
            take_branch = not alu_zero
        else:
            take_branch = bool(alu_zero)
        if take_branch:
            return (pc_plus_4 + (fields.imm32 << 2)) & WORD_MASK

    return pc_plus_4


# --- Write back ---

def execute_update_regs(fields: InstructionFields, control: ControlSignals,
                        alu_result: AluResult, mem_result: MemResult,
                        registers: RegisterFile) -> Optional[Tuple[int, int]]:
    """
    Commits the instruction's result and returns (register, value), or None
    when nothing was written. Register 0 is never written.
    """
    if not control.reg_write:
        return None

    dest_reg = fields.rd if control.reg_dst else fields.rt
    value = mem_result.read_val if control.mem_to_reg else alu_result.result

    if dest_reg == 0:
        return None
    registers.write(dest_reg, value)
    return dest_reg, value & WORD_MASK


class CPUModel:
    """
    State of one simulated core: register file, instruction and data memories,
    program counter and cycle count. Instances share nothing.
    """

    def __init__(self, data_words: int = DEFAULT_DATA_WORDS):
        self.data_words = data_words
        self.reset()

    def reset(self, program: Iterable[int] = (),
              initial_memory: Union[Iterable[int], Mapping[int, int], None] = None,
              entry_point: int = 0):
        self.registers = RegisterFile()
        self.instruction_memory = InstructionMemory(program)
        self.data_memory = DataMemory(size=self.data_words)
        if isinstance(initial_memory, Mapping):
            # {byte_address: word}
            for addr, val in initial_memory.items():
                self.data_memory.load_image([val], base_index=addr // WORD_SIZE_BYTES)
        elif initial_memory is not None:
            self.data_memory.load_image(initial_memory)
        self.pc = entry_point & WORD_MASK
        self.cycle_count = 0

    # Component views, one per datapath block
    def decoder_inst(self, trace: CycleTrace) -> str:
        f = trace.fields
        return (f"Input (Inst): 0x{trace.word:08X}\n"
                f"Opcode: 0x{f.opcode:02X} Funct: 0x{f.funct:02X}\n"
                f"RS: ${f.rs} RT: ${f.rt} RD: ${f.rd} Shamt: {f.shamt}\n"
                f"Imm32: 0x{f.imm32:08X} Addr: 0x{f.address:07X}")

    def control_inst(self, trace: CycleTrace) -> str:
        return str(trace.control)

    def alu_src_selector(self, trace: CycleTrace) -> str:
        return (f"ALU Operand 1: 0x{trace.alu_input1:08X}\n"
                f"ALU Operand 2: 0x{trace.alu_input2:08X}")

    def alu_inst(self, trace: CycleTrace) -> str:
        negate = " (negated)" if trace.control.b_negate else ""
        return f"Operation: {trace.control.alu_op}{negate}\n{trace.alu_result}"

    def dmem_intf_inst(self, trace: CycleTrace) -> str:
        addr = trace.alu_result.result
        if trace.control.mem_write:
            return f"Writing address: 0x{addr:08X}\nRAM Write Data: 0x{trace.transaction.data:08X}"
        if trace.control.mem_read:
            return f"Reading address: 0x{addr:08X}\nRAM Load Data: 0x{trace.mem_result.read_val:08X}"
        return "No Read/Write Enabled"

    def next_pc_inst(self, trace: CycleTrace) -> str:
        if trace.control.jump:
            source = "Jump Target"
        elif trace.control.branch:
            taken = trace.next_pc != ((trace.pc + 4) & WORD_MASK)
            source = "Branch Taken" if taken else "Branch Not Taken (PC+4)"
        else:
            source = "PC+4 (Sequential)"
        return f"Selected Next PC: 0x{trace.next_pc:08X} via {source}"

    def write_back_inst(self, trace: CycleTrace) -> str:
        if trace.written_register is None:
            return "No register written"
        index, value = trace.written_register
        source = "Memory" if trace.control.mem_to_reg else "ALU"
        return f"${index} <= 0x{value:08X} (Source: {source})"

    def return_component_mapping(self) -> Dict[str, Dict[str, Callable[[CycleTrace], str]]]:
        return {
            "decoder":     {"component": "instruction_decoder", "function": self.decoder_inst},
            "control":     {"component": "control_unit", "function": self.control_inst},
            "alu_inputs":  {"component": "alu_src_selector", "function": self.alu_src_selector},
            "alu":         {"component": "alu", "function": self.alu_inst},
            "memory":      {"component": "data_memory_n_interface", "function": self.dmem_intf_inst},
            "next_pc":     {"component": "pc_source_selector", "function": self.next_pc_inst},
            "write_back":  {"component": "register_write_back", "function": self.write_back_inst},
        }

    def return_group_string_dict(self, trace: CycleTrace) -> Dict[str, str]:
        """
        Maps each datapath component to a formatted description of what it did
        during the traced cycle.
        """
        group_to_tooltip = {}
        for group_id, details in self.return_component_mapping().items():
            group_to_tooltip[group_id] = f"{details['component']}: {details['function'](trace)}"
        return group_to_tooltip
