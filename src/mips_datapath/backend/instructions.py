from dataclasses import dataclass, field
from typing import Dict, Optional

from mips_datapath.backend.schemes import WORD_MASK, extract_bits, sign_extend, to_signed

REGISTER_NAMES = [
    "zero", "at", "v0", "v1", "a0", "a1", "a2", "a3",
    "t0", "t1", "t2", "t3", "t4", "t5", "t6", "t7",
    "s0", "s1", "s2", "s3", "s4", "s5", "s6", "s7",
    "t8", "t9", "k0", "k1", "gp", "sp", "fp", "ra",
]


@dataclass
class InstructionFields:
    """Decoded view of one instruction word. Every field is extracted, whatever the format."""
    word: int
    opcode: int = field(init=False)
    rs: int = field(init=False)
    rt: int = field(init=False)
    rd: int = field(init=False)
    shamt: int = field(init=False)
    funct: int = field(init=False)
    imm16: int = field(init=False)
    imm32: int = field(init=False)
    address: int = field(init=False)

    def __post_init__(self):
        self.word    = self.word & WORD_MASK
        self.opcode  = extract_bits(self.word, 26, 6)
        self.rs      = extract_bits(self.word, 21, 5)
        self.rt      = extract_bits(self.word, 16, 5)
        self.rd      = extract_bits(self.word, 11, 5)
        self.shamt   = extract_bits(self.word, 6, 5)
        self.funct   = extract_bits(self.word, 0, 6)
        self.imm16   = extract_bits(self.word, 0, 16)
        self.imm32   = sign_extend(self.imm16, 16)
        self.address = extract_bits(self.word, 0, 26)

    def __str__(self):
        return (f"Opcode: 0x{self.opcode:02X}\n"
                f"RS:     ${self.rs}\n"
                f"RT:     ${self.rt}\n"
                f"RD:     ${self.rd}\n"
                f"Shamt:  {self.shamt}\n"
                f"Funct:  0x{self.funct:02X}\n"
                f"Imm16:  0x{self.imm16:04X}\n"
                f"Imm32:  0x{self.imm32:08X}\n"
                f"Addr:   0x{self.address:07X}")


def extract_instruction_fields(word: int) -> InstructionFields:
    return InstructionFields(word)


def reg_name(index: int) -> str:
    return f"${REGISTER_NAMES[index]}"


class InstructionFactory:
    # --- OPCODES (Bits 31:26) ---
    OP_R_FORMAT = 0x00
    OP_J        = 0x02
    OP_BEQ      = 0x04
    OP_BNE      = 0x05
    OP_ADDI     = 0x08
    OP_ADDIU    = 0x09
    OP_SLTI     = 0x0A
    OP_LUI      = 0x0F
    OP_LW       = 0x23
    OP_SW       = 0x2B

    # --- FUNCT (Bits 5:0, opcode 0 only) ---
    FUNCT_SLL     = 0x00
    FUNCT_SYSCALL = 0x0C
    FUNCT_ADD     = 0x20
    FUNCT_ADDU    = 0x21
    FUNCT_SUB     = 0x22
    FUNCT_SUBU    = 0x23
    FUNCT_AND     = 0x24
    FUNCT_OR      = 0x25
    FUNCT_XOR     = 0x26
    FUNCT_SLT     = 0x2A

    # syscall is recognised for disassembly only; the control unit rejects it
    FUNCT_MNEMONICS: Dict[int, str] = {
        FUNCT_SLL:     "sll",
        FUNCT_SYSCALL: "syscall",
        FUNCT_ADD:     "add",
        FUNCT_ADDU:    "addu",
        FUNCT_SUB:     "sub",
        FUNCT_SUBU:    "subu",
        FUNCT_AND:     "and",
        FUNCT_OR:      "or",
        FUNCT_XOR:     "xor",
        FUNCT_SLT:     "slt",
    }

    OPCODE_MNEMONICS: Dict[int, str] = {
        OP_J:     "j",
        OP_BEQ:   "beq",
        OP_BNE:   "bne",
        OP_ADDI:  "addi",
        OP_ADDIU: "addiu",
        OP_SLTI:  "slti",
        OP_LUI:   "lui",
        OP_LW:    "lw",
        OP_SW:    "sw",
    }

    @classmethod
    def mnemonic(cls, fields: InstructionFields) -> Optional[str]:
        if fields.opcode == cls.OP_R_FORMAT:
            return cls.FUNCT_MNEMONICS.get(fields.funct)
        return cls.OPCODE_MNEMONICS.get(fields.opcode)

    @classmethod
    def disassemble(cls, word: int, pc: Optional[int] = None) -> str:
        """
        Render a word as assembly text.
        When `pc` is given, branch and jump targets are shown as absolute addresses.
        """
        f = extract_instruction_fields(word)
        name = cls.mnemonic(f)

        if name is None:
            return f"unknown (raw: 0x{f.word:08X})"
        if f.word == 0:
            return "nop"
        if name == "syscall":
            return name
        if name == "sll":
            return f"{name:7} {reg_name(f.rd)}, {reg_name(f.rt)}, {f.shamt}"
        if f.opcode == cls.OP_R_FORMAT:
            return f"{name:7} {reg_name(f.rd)}, {reg_name(f.rs)}, {reg_name(f.rt)}"
        if name == "j":
            target = f.address << 2
            if pc is not None:
                target |= (pc + 4) & 0xF0000000
            return f"{name:7} 0x{target:08X}"
        if name in ("beq", "bne"):
            offset = to_signed(f.imm32)
            if pc is not None:
                target = (pc + 4 + (offset << 2)) & WORD_MASK
                return f"{name:7} {reg_name(f.rs)}, {reg_name(f.rt)}, 0x{target:08X}"
            return f"{name:7} {reg_name(f.rs)}, {reg_name(f.rt)}, {offset}"
        if name == "lui":
            return f"{name:7} {reg_name(f.rt)}, 0x{f.imm16:04X}"
        if name in ("lw", "sw"):
            return f"{name:7} {reg_name(f.rt)}, {to_signed(f.imm32)}({reg_name(f.rs)})"
        # addi, addiu, slti
        return f"{name:7} {reg_name(f.rt)}, {reg_name(f.rs)}, {to_signed(f.imm32)}"
