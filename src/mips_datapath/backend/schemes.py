from __future__ import annotations
from dataclasses import dataclass
from typing import List, Iterable, Optional, Tuple, Dict, TYPE_CHECKING
from enum import Enum
import struct

if TYPE_CHECKING:
    from mips_datapath.backend.instructions import InstructionFields

WORD_SIZE_BYTES = 4 # 32 bits
WORD_MASK = 0xFFFFFFFF
REGISTER_COUNT = 32
DEFAULT_DATA_WORDS = 16384 # 64 KiB


def extract_bits(word: int, shift: int, width: int) -> int:
    """Return `width` bits from `word`, starting at `shift`."""
    if width <= 0 or width > 32:
        raise ValueError("width must be between 1 and 32")
    mask = (1 << width) - 1
    return (word >> shift) & mask


def sign_extend(value: int, bits: int) -> int:
    """Sign-extend a `bits` wide value and return it as an unsigned 32-bit word."""
    value &= (1 << bits) - 1
    if value & (1 << (bits - 1)):
        value -= 1 << bits
    return value & WORD_MASK


def to_signed(word: int) -> int:
    word &= WORD_MASK
    return word - (1 << 32) if word & (1 << 31) else word


class MemoryAccessError(IndexError):
    """Word index outside an instruction or data memory."""
    pass


class RegisterIndexError(IndexError):
    """Register index outside 0..31."""
    pass


class AluOp(Enum):
    AND = 0
    OR  = 1
    ADD = 2
    SLT = 3
    XOR = 4
    SLL = 5

    def __str__(self):
        mapping = {
            AluOp.AND: "AND",
            AluOp.OR:  "OR",
            AluOp.ADD: "ADD",
            AluOp.SLT: "SLT",
            AluOp.XOR: "XOR",
            AluOp.SLL: "SLL",
        }
        return mapping.get(self, f"INVALID ALU OP ({self.value})")


class InstructionKind(Enum):
    NONE                 = 0
    REGISTER_ALU         = 1  # add, addu, sub, subu, and, or, xor, slt
    SHIFT                = 2  # sll
    IMMEDIATE_ALU        = 3  # addi, addiu, slti
    LOAD_UPPER_IMMEDIATE = 4
    LOAD                 = 5
    STORE                = 6
    BRANCH_EQUAL         = 7
    BRANCH_NOT_EQUAL     = 8
    JUMP                 = 9

    def __str__(self):
        return self.name.replace("_", " ").title()


@dataclass(frozen=True)
class ControlSignals:
    """
    Datapath configuration for one instruction.
    The default instance is the inert vector: nothing reads, writes or branches.
    """
    kind: InstructionKind = InstructionKind.NONE
    alu_src: bool = False
    alu_op: AluOp = AluOp.AND
    b_negate: bool = False
    mem_read: bool = False
    mem_write: bool = False
    mem_to_reg: bool = False
    reg_dst: bool = False
    reg_write: bool = False
    branch: bool = False
    jump: bool = False

    @property
    def not_equal(self) -> bool:
        return self.kind is InstructionKind.BRANCH_NOT_EQUAL

    @property
    def upper_immediate(self) -> bool:
        return self.kind is InstructionKind.LOAD_UPPER_IMMEDIATE

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "alu_src": int(self.alu_src),
            "alu_op": self.alu_op,
            "b_negate": int(self.b_negate),
            "mem_read": int(self.mem_read),
            "mem_write": int(self.mem_write),
            "mem_to_reg": int(self.mem_to_reg),
            "reg_dst": int(self.reg_dst),
            "reg_write": int(self.reg_write),
            "branch": int(self.branch),
            "jump": int(self.jump),
            "not_equal": int(self.not_equal),
            "upper_immediate": int(self.upper_immediate),
        }

    def __str__(self):
        return "\n".join(f"{k.upper()}: {v}" for k, v in self.to_dict().items())


INERT_CONTROL = ControlSignals()


@dataclass(frozen=True)
class AluResult:
    result: int
    zero: bool

    def __str__(self):
        return f"ALU Result: 0x{self.result:08X} (Zero={int(self.zero)})"


@dataclass(frozen=True)
class AtomicMemTransaction:
    """Single store performed by the memory stage."""
    occurred: bool
    address: int
    data: int

    def __str__(self):
        if not self.occurred:
            return "No store operation was recorded."
        return f"Store occurred at 0x{self.address:08X} with data 0x{self.data:08X}"

    def cmpct_str(self):
        if not self.occurred:
            return "No store"
        return f"MEM[0x{self.address:08X}] <= 0x{self.data:08X}"


NO_TRANSACTION = AtomicMemTransaction(occurred=False, address=0, data=0)


@dataclass(frozen=True)
class MemResult:
    # Zero whenever the instruction did not read memory
    read_val: int = 0
    transaction: AtomicMemTransaction = NO_TRANSACTION

    def __str__(self):
        return f"Read Value: 0x{self.read_val:08X}"


class RegisterFileEntry:
    def __init__(self, reg_addr: int, value: int):
        self.reg_addr = reg_addr
        self.value = value

    def __str__(self):
        return f"${self.reg_addr}: 0x{self.value:08X}"


class RegisterFile:
    """
    32 general purpose registers.
    Register 0 is hard-wired to zero: writes to it are discarded and reads
    always return 0.
    """

    def __init__(self, entries: Optional[Iterable[RegisterFileEntry]] = None):
        if entries is None:
            entries = (RegisterFileEntry(i, 0) for i in range(REGISTER_COUNT))
        self.entries = list(entries)
        if len(self.entries) != REGISTER_COUNT:
            raise ValueError(f"Expected {REGISTER_COUNT} registers, got {len(self.entries)}")
        self.entries[0].value = 0

    @staticmethod
    def _check(index: int):
        if not 0 <= index < REGISTER_COUNT:
            raise RegisterIndexError(f"Register index out of range: {index}")

    def read(self, index: int) -> int:
        self._check(index)
        if index == 0:
            return 0
        return self.entries[index].value

    def write(self, index: int, value: int):
        self._check(index)
        if index == 0:
            return
        self.entries[index].value = value & WORD_MASK

    def __getitem__(self, index: int) -> int:
        return self.read(index)

    def __setitem__(self, index: int, value: int):
        self.write(index, value)

    def __len__(self):
        return REGISTER_COUNT

    def snapshot(self) -> List[int]:
        return [self.read(i) for i in range(REGISTER_COUNT)]

    def copy(self) -> "RegisterFile":
        return RegisterFile(RegisterFileEntry(e.reg_addr, e.value) for e in self.entries)

    def __str__(self):
        return "\n".join(str(entry) for entry in self.entries)


class InstructionMemory:
    """Read-only word-addressed program image."""

    def __init__(self, words: Iterable[int] = ()):
        self.words: Tuple[int, ...] = tuple(w & WORD_MASK for w in words)

    def __len__(self):
        return len(self.words)

    def contains(self, pc: int) -> bool:
        return 0 <= pc // WORD_SIZE_BYTES < len(self.words)

    def read_word(self, index: int) -> int:
        if not 0 <= index < len(self.words):
            raise MemoryAccessError(
                f"Instruction fetch outside program image: word {index} (image has {len(self.words)} words)")
        return self.words[index]


@dataclass
class DataMemory:
    """
    Flat word-addressed data memory.
    Every access is bounds checked. A store returns the transaction it performed.
    """
    size: int = DEFAULT_DATA_WORDS
    words: Optional[List[int]] = None

    def __post_init__(self):
        if self.words is None:
            self.words = [0] * self.size
        else:
            self.words = [w & WORD_MASK for w in self.words]
            if len(self.words) < self.size:
                self.words.extend([0] * (self.size - len(self.words)))
            self.size = len(self.words)

    def _check(self, index: int):
        if not 0 <= index < self.size:
            raise MemoryAccessError(f"Data memory access outside 0..{self.size - 1}: word {index}")

    def read_word(self, index: int) -> int:
        self._check(index)
        return self.words[index]

    def write_word(self, index: int, value: int) -> AtomicMemTransaction:
        self._check(index)
        value &= WORD_MASK
        self.words[index] = value
        return AtomicMemTransaction(occurred=True, address=index * WORD_SIZE_BYTES, data=value)

    def load_image(self, words: Iterable[int], base_index: int = 0):
        """Copy an image into memory, word by word from `base_index`."""
        for offset, value in enumerate(words):
            self._check(base_index + offset)
            self.words[base_index + offset] = value & WORD_MASK

    def get_memory_snapshot(self) -> Dict[int, int]:
        """
        Returns the non-zero words keyed by byte address.
        """
        return {i * WORD_SIZE_BYTES: w for i, w in enumerate(self.words) if w != 0}


@dataclass(frozen=True)
class CycleTrace:
    """Everything one clock cycle computed."""
    cycle: int
    pc: int
    word: int
    fields: "InstructionFields"
    control: ControlSignals
    alu_input1: int
    alu_input2: int
    alu_result: AluResult
    mem_result: MemResult
    transaction: AtomicMemTransaction
    written_register: Optional[Tuple[int, int]]
    next_pc: int

    @property
    def mnemonic(self) -> str:
        from mips_datapath.backend.instructions import InstructionFactory
        return InstructionFactory.disassemble(self.word, self.pc)

    def __str__(self):
        written = "none"
        if self.written_register is not None:
            index, value = self.written_register
            written = f"${index} <= 0x{value:08X}"
        return (f"[{self.cycle:>5}] 0x{self.pc:08X}: {self.word:08X}  {self.mnemonic:<24}"
                f" | alu 0x{self.alu_result.result:08X} z={int(self.alu_result.zero)}"
                f" | reg {written}"
                f" | mem {self.transaction.cmpct_str()}"
                f" | next 0x{self.next_pc:08X}")


def unpack_words(data: bytes, word_amount: int, use_little_endian: bool = True) -> List[int]:
    """Unpack N 32-bit words from bytes. Uses little endian as default"""
    if len(data) < word_amount * WORD_SIZE_BYTES:
        raise ValueError(f"Not enough data to unpack the required number of words. Expected at least {word_amount * WORD_SIZE_BYTES} bytes, got {len(data)} bytes.")
    endian_char = "<" if use_little_endian else ">"
    return list(struct.unpack(f"{endian_char}{word_amount}I", data[: word_amount * WORD_SIZE_BYTES]))


def pack_words(words: Iterable[int], use_little_endian: bool = True) -> bytes:
    endian_char = "<" if use_little_endian else ">"
    return b"".join(struct.pack(f"{endian_char}I", w & WORD_MASK) for w in words)
