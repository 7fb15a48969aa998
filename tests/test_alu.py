import pytest

from mips_datapath.backend.schemes import AluOp, ControlSignals, InstructionKind
from mips_datapath.backend.instructions import extract_instruction_fields
from mips_datapath.backend.control import fill_cpu_control
from mips_datapath.backend.cpu_model import execute_alu, get_alu_input1, get_alu_input2


def alu(op, a, b, negate=False):
    return execute_alu(ControlSignals(alu_op=op, b_negate=negate), a, b)


def decode(word):
    fields = extract_instruction_fields(word)
    control, decoded = fill_cpu_control(fields)
    assert decoded
    return control, fields


# --- Operand selection ---

def test_register_operands():
    control, fields = decode(0x012A4020)  # add $t0, $t1, $t2
    assert get_alu_input1(control, fields, 7, 9, 0) == 7
    assert get_alu_input2(control, fields, 7, 9, 0) == 9


def test_immediate_operand_is_sign_extended():
    control, fields = decode(0x2002FFFF)  # addi $v0, $zero, -1
    assert get_alu_input2(control, fields, 3, 4, 0) == 0xFFFFFFFF


def test_shift_uses_rt_and_shamt():
    control, fields = decode(0x00084900)  # sll $t1, $t0, 4
    assert get_alu_input1(control, fields, 0xAAAA, 1, 0) == 1
    assert get_alu_input2(control, fields, 0xAAAA, 1, 0) == 4


def test_upper_immediate_operands():
    control, fields = decode(0x3C081234)  # lui $t0, 0x1234
    assert get_alu_input1(control, fields, 55, 66, 0) == 0
    assert get_alu_input2(control, fields, 55, 66, 0) == 0x12340000


# --- Operations ---

def test_bitwise_ops():
    assert alu(AluOp.AND, 0xF0F0F0F0, 0xFF00FF00).result == 0xF000F000
    assert alu(AluOp.OR, 0xF0F0F0F0, 0x0F000000).result == 0xFFF0F0F0
    assert alu(AluOp.XOR, 0xFFFF0000, 0xFF00FF00).result == 0x00FFFF00


def test_add_wraps():
    out = alu(AluOp.ADD, 0x7FFFFFFF, 1)
    assert out.result == 0x80000000
    assert not out.zero
    out = alu(AluOp.ADD, 0xFFFFFFFF, 1)
    assert out.result == 0
    assert out.zero


def test_sub_of_equal_operands_is_zero():
    out = alu(AluOp.ADD, 1234, 1234, negate=True)
    assert out.result == 0
    assert out.zero


def test_sub_borrows():
    assert alu(AluOp.ADD, 0, 1, negate=True).result == 0xFFFFFFFF
    assert alu(AluOp.ADD, 10, 3, negate=True).result == 7


def test_negating_int_min_wraps():
    assert alu(AluOp.ADD, 0, 0x80000000, negate=True).result == 0x80000000


@pytest.mark.parametrize("a, b, expected", [
    (0xFFFFFFFF, 1, 1),       # -1 < 1
    (1, 0xFFFFFFFF, 0),
    (5, 5, 0),
    (0x80000000, 0x7FFFFFFF, 1),
    (0x7FFFFFFF, 0x80000000, 0),
])
def test_slt_is_signed(a, b, expected):
    assert alu(AluOp.SLT, a, b, negate=True).result == expected
    assert alu(AluOp.SLT, a, b).result == expected


@pytest.mark.parametrize("amount, expected", [
    (0, 0x00000003),
    (4, 0x00000030),
    (31, 0x80000000),
    (32, 0x00000003),   # only the low 5 bits count
    (36, 0x00000030),
])
def test_sll(amount, expected):
    assert alu(AluOp.SLL, 3, amount).result == expected


def test_zero_flag_tracks_result():
    assert alu(AluOp.AND, 0xF0, 0x0F).zero
    assert not alu(AluOp.OR, 0xF0, 0x0F).zero


def test_unknown_operation_yields_zero():
    control = ControlSignals(kind=InstructionKind.NONE, alu_op=None)
    out = execute_alu(control, 5, 7)
    assert out.result == 0
    assert out.zero
