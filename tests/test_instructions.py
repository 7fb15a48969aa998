import pytest

from mips_datapath.backend.instructions import InstructionFactory, extract_instruction_fields, reg_name


def squash(text):
    return " ".join(text.split())


def test_field_layout():
    # add $t0, $t1, $t2
    f = extract_instruction_fields(0x012A4020)
    assert f.opcode == 0
    assert f.rs == 9
    assert f.rt == 10
    assert f.rd == 8
    assert f.shamt == 0
    assert f.funct == 0x20


@pytest.mark.parametrize("word", [0x00000000, 0xFFFFFFFF, 0x8C430004, 0x1234ABCD, 0xDEADBEEF])
def test_fields_are_plain_masks(word):
    f = extract_instruction_fields(word)
    assert f.opcode == (word >> 26) & 0x3F
    assert f.rs == (word >> 21) & 0x1F
    assert f.rt == (word >> 16) & 0x1F
    assert f.rd == (word >> 11) & 0x1F
    assert f.shamt == (word >> 6) & 0x1F
    assert f.funct == word & 0x3F
    assert f.imm16 == word & 0xFFFF
    assert f.address == word & 0x3FFFFFF


@pytest.mark.parametrize("imm16, imm32", [
    (0x0000, 0x00000000),
    (0x7FFF, 0x00007FFF),
    (0x8000, 0xFFFF8000),
    (0xFFFF, 0xFFFFFFFF),
])
def test_imm32_sign_extension(imm16, imm32):
    f = extract_instruction_fields((0x08 << 26) | imm16)
    assert f.imm32 == imm32


def test_reg_name():
    assert reg_name(0) == "$zero"
    assert reg_name(29) == "$sp"


@pytest.mark.parametrize("word, pc, text", [
    (0x00000000, None, "nop"),
    (0x0000000C, None, "syscall"),
    (0x012A4020, None, "add $t0, $t1, $t2"),
    (0x00084900, None, "sll $t1, $t0, 4"),
    (0x20020005, None, "addi $v0, $zero, 5"),
    (0x2002FFFF, None, "addi $v0, $zero, -1"),
    (0x3C081234, None, "lui $t0, 0x1234"),
    (0x8D090008, None, "lw $t1, 8($t0)"),
    (0xAD09FFFC, None, "sw $t1, -4($t0)"),
    (0x1509FFFE, None, "bne $t0, $t1, -2"),
    (0x1509FFFE, 0x10, "bne $t0, $t1, 0x0000000C"),
    (0x08000004, 0x10, "j 0x00000010"),
])
def test_disassemble(word, pc, text):
    assert squash(InstructionFactory.disassemble(word, pc)) == text


def test_disassemble_unknown():
    assert InstructionFactory.disassemble(0xFC000000) == "unknown (raw: 0xFC000000)"
    # jr is not part of the instruction set
    assert InstructionFactory.disassemble(0x03E00008).startswith("unknown")
