import re
import logging
from typing import Dict, Iterable, List, Tuple

from mips_datapath.backend.schemes import WORD_MASK, pack_words
from mips_datapath.backend.instructions import REGISTER_NAMES, InstructionFactory as F

raw_log = logging.getLogger('mips.raw')
clean_log = logging.getLogger('mips.clean')


class AssemblerError(Exception):
    """Source line that cannot be assembled."""

    def __init__(self, line_no: int, message: str):
        self.line_no = line_no
        super().__init__(f"line {line_no}: {message}")


# ==============================================================================
# 1. ARCHITECTURE DEFINITIONS
# ==============================================================================

REGISTERS: Dict[str, int] = {name: i for i, name in enumerate(REGISTER_NAMES)}
REGISTERS['s8'] = 30
for i in range(32): REGISTERS[str(i)] = i

ASM_TEMP_REG = '$at'
SYSCALL_WORD = F.FUNCT_SYSCALL

INSTRUCTIONS = {
    'sll':   {'type': 'SHIFT', 'funct': F.FUNCT_SLL},
    'add':   {'type': 'R', 'funct': F.FUNCT_ADD},
    'addu':  {'type': 'R', 'funct': F.FUNCT_ADDU},
    'sub':   {'type': 'R', 'funct': F.FUNCT_SUB},
    'subu':  {'type': 'R', 'funct': F.FUNCT_SUBU},
    'and':   {'type': 'R', 'funct': F.FUNCT_AND},
    'or':    {'type': 'R', 'funct': F.FUNCT_OR},
    'xor':   {'type': 'R', 'funct': F.FUNCT_XOR},
    'slt':   {'type': 'R', 'funct': F.FUNCT_SLT},
    'j':     {'type': 'J', 'opcode': F.OP_J},
    'beq':   {'type': 'B', 'opcode': F.OP_BEQ},
    'bne':   {'type': 'B', 'opcode': F.OP_BNE},
    'addi':  {'type': 'I', 'opcode': F.OP_ADDI},
    'addiu': {'type': 'I', 'opcode': F.OP_ADDIU},
    'slti':  {'type': 'I', 'opcode': F.OP_SLTI},
    'lui':   {'type': 'U', 'opcode': F.OP_LUI},
    'lw':    {'type': 'MEM', 'opcode': F.OP_LW},
    'sw':    {'type': 'MEM', 'opcode': F.OP_SW},
    'syscall': {'type': 'SYS'},
    '.word': {'type': 'WORD'},
}

# ==============================================================================
# 2. HELPER FUNCTIONS
# ==============================================================================

def parse_reg(s: str) -> int:
    s = s.strip().lower()
    if not s.startswith('$') or s[1:] not in REGISTERS:
        raise ValueError(f"Unknown register: {s}")
    return REGISTERS[s[1:]]


def parse_imm(s: str) -> int:
    try:
        return int(s.strip(), 0)
    except ValueError:
        raise ValueError(f"Invalid immediate: {s}") from None


def check_range(value: int, bits: int, signed: bool = True, allow_raw: bool = False) -> int:
    """
    Validate that `value` fits in `bits` and return its raw bit pattern.
    `allow_raw` also accepts the unsigned spelling of a signed field (0xFFFF for -1).
    """
    if signed:
        low = -(1 << (bits - 1))
        high = (1 << bits) - 1 if allow_raw else (1 << (bits - 1)) - 1
    else:
        low, high = 0, (1 << bits) - 1
    if not low <= value <= high:
        raise ValueError(f"Value {value} does not fit in {bits} bits")
    return value & ((1 << bits) - 1)


def split_operands(line: str) -> Tuple[str, List[str]]:
    parts = line.split(None, 1)
    mnemonic = parts[0].lower()
    args = [a.strip() for a in parts[1].split(',')] if len(parts) > 1 else []
    return mnemonic, [a for a in args if a]


def strip_comment(line: str) -> str:
    return line.split('#')[0].strip()


def expect_args(args: List[str], count: int, mnemonic: str):
    if len(args) != count:
        raise ValueError(f"'{mnemonic}' expects {count} operands, got {len(args)}")


# ==============================================================================
# 3. CORE PROCESSING LOGIC
# ==============================================================================

def expand_macros(raw_lines: Iterable[str]) -> List[Tuple[int, str]]:
    """Strips comments and expands pseudo-instructions. Keeps source line numbers."""
    expanded = []
    for line_no, line in enumerate(raw_lines, start=1):
        line = strip_comment(line)
        if not line:
            continue

        # Labels may share a line with an instruction
        while True:
            match = re.match(r'^([A-Za-z_.][\w.]*)\s*:\s*(.*)$', line)
            if not match:
                break
            expanded.append((line_no, match.group(1) + ':'))
            line = match.group(2)
        if not line:
            continue

        mnemonic, args = split_operands(line)
        try:
            new_instrs = expand_pseudo(mnemonic, args)
        except ValueError as e:
            raise AssemblerError(line_no, str(e)) from e

        if new_instrs is None:
            expanded.append((line_no, line))
            continue

        clean_log.debug(f"  Macro: '{line}' -> {', '.join(new_instrs)}")
        expanded.extend((line_no, instr) for instr in new_instrs)
    return expanded


def expand_pseudo(mnemonic: str, args: List[str]):
    if mnemonic == 'nop':
        return ["sll $zero, $zero, 0"]
    if mnemonic == 'halt':
        return ["syscall"]
    if mnemonic == 'move':
        expect_args(args, 2, mnemonic)
        return [f"addu {args[0]}, {args[1]}, $zero"]
    if mnemonic == 'b':
        expect_args(args, 1, mnemonic)
        return [f"beq $zero, $zero, {args[0]}"]
    if mnemonic in ('blt', 'bge'):
        expect_args(args, 3, mnemonic)
        branch = 'bne' if mnemonic == 'blt' else 'beq'
        return [f"slt {ASM_TEMP_REG}, {args[0]}, {args[1]}",
                f"{branch} {ASM_TEMP_REG}, $zero, {args[2]}"]
    if mnemonic == 'li':
        expect_args(args, 2, mnemonic)
        rt, imm = args[0], parse_imm(args[1])
        if not -(1 << 31) <= imm <= WORD_MASK:
            raise ValueError(f"Immediate does not fit in 32 bits: {imm}")
        if -32768 <= imm <= 32767:
            return [f"addiu {rt}, $zero, {imm}"]
        imm &= WORD_MASK
        lower = imm & 0xFFFF
        upper = (imm >> 16) & 0xFFFF
        # addiu sign-extends, so borrow from the upper half when bit 15 is set
        if lower & 0x8000:
            upper = (upper + 1) & 0xFFFF
            lower -= 0x10000
        instrs = [f"lui {rt}, {upper}"]
        if lower != 0:
            instrs.append(f"addiu {rt}, {rt}, {lower}")
        return instrs
    return None


def encode(pc: int, mnemonic: str, args: List[str], labels: Dict[str, int]) -> int:
    if mnemonic not in INSTRUCTIONS:
        raise ValueError(f"Unknown instruction: {mnemonic}")
    info = INSTRUCTIONS[mnemonic]
    kind = info['type']

    def target(label: str) -> int:
        key = label.lower()
        if key in labels:
            return labels[key]
        return parse_imm(label)

    if kind == 'R':
        expect_args(args, 3, mnemonic)
        rd, rs, rt = parse_reg(args[0]), parse_reg(args[1]), parse_reg(args[2])
        return (rs << 21) | (rt << 16) | (rd << 11) | info['funct']
    if kind == 'SHIFT':
        expect_args(args, 3, mnemonic)
        rd, rt = parse_reg(args[0]), parse_reg(args[1])
        shamt = check_range(parse_imm(args[2]), 5, signed=False)
        return (rt << 16) | (rd << 11) | (shamt << 6) | info['funct']
    if kind == 'I':
        expect_args(args, 3, mnemonic)
        rt, rs = parse_reg(args[0]), parse_reg(args[1])
        imm = check_range(parse_imm(args[2]), 16, allow_raw=True)
        return (info['opcode'] << 26) | (rs << 21) | (rt << 16) | imm
    if kind == 'U':
        expect_args(args, 2, mnemonic)
        rt = parse_reg(args[0])
        imm = check_range(parse_imm(args[1]), 16, signed=False)
        return (info['opcode'] << 26) | (rt << 16) | imm
    if kind == 'MEM':
        expect_args(args, 2, mnemonic)
        rt = parse_reg(args[0])
        match = re.match(r'^(.*)\(\s*(\$\w+)\s*\)$', args[1])
        if not match:
            raise ValueError(f"Expected offset($reg), got '{args[1]}'")
        offset = match.group(1).strip() or '0'
        imm = check_range(parse_imm(offset), 16)
        rs = parse_reg(match.group(2))
        return (info['opcode'] << 26) | (rs << 21) | (rt << 16) | imm
    if kind == 'B':
        expect_args(args, 3, mnemonic)
        rs, rt = parse_reg(args[0]), parse_reg(args[1])
        delta = target(args[2]) - (pc + 4)
        if delta % 4:
            raise ValueError(f"Branch target is not word aligned: {args[2]}")
        offset = check_range(delta >> 2, 16)
        return (info['opcode'] << 26) | (rs << 21) | (rt << 16) | offset
    if kind == 'J':
        expect_args(args, 1, mnemonic)
        dest = target(args[0])
        if dest % 4:
            raise ValueError(f"Jump target is not word aligned: {args[0]}")
        if (dest & 0xF0000000) != ((pc + 4) & 0xF0000000):
            raise ValueError(f"Jump target 0x{dest:08X} is outside the current 256 MiB region")
        return (info['opcode'] << 26) | ((dest >> 2) & 0x3FFFFFF)
    if kind == 'SYS':
        expect_args(args, 0, mnemonic)
        return SYSCALL_WORD
    if kind == 'WORD':
        expect_args(args, 1, mnemonic)
        return check_range(parse_imm(args[0]), 32, allow_raw=True)
    raise ValueError(f"Unhandled instruction type: {kind}")


def assemble(source_lines: Iterable[str], base_address: int = 0) -> List[int]:
    """Two passes: collect label addresses, then encode every instruction."""
    clean_log.info("--- Phase 1: Macro Expansion ---")
    lines = expand_macros(source_lines)

    labels: Dict[str, int] = {}
    pc = base_address
    clean_instrs = []
    for line_no, line in lines:
        if line.endswith(':'):
            name = line[:-1].lower()
            if name in labels:
                raise AssemblerError(line_no, f"Duplicate label: {line[:-1]}")
            labels[name] = pc
            continue
        clean_instrs.append((line_no, pc, line))
        pc += 4

    clean_log.info("--- Phase 2: Instruction Encoding ---")
    binary_code = []
    for line_no, pc, line in clean_instrs:
        mnemonic, args = split_operands(line)
        try:
            val = encode(pc, mnemonic, args, labels)
        except ValueError as e:
            raise AssemblerError(line_no, str(e)) from e

        raw_log.info(f"0x{val:08x}")
        clean_log.info(f"0x{pc:08X} | {line:<28} -> 0x{val:08X}")
        binary_code.append(val)
    return binary_code


# ==============================================================================
# 4. STANDARDIZED API
# ==============================================================================

def assemble_source(source: str, base_address: int = 0) -> List[int]:
    return assemble(source.splitlines(), base_address)


def assemble_file(source: str, little_endian: bool = True) -> Tuple[bytes, List[int]]:
    """
    Assembles a source string and returns (payload bytes, machine code words).
    """
    machine_code = assemble_source(source)
    payload = pack_words(machine_code, little_endian)
    return payload, machine_code
