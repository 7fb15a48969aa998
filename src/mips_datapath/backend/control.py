from typing import Dict, Tuple

from mips_datapath.backend.schemes import AluOp, ControlSignals, InstructionKind, INERT_CONTROL
from mips_datapath.backend.instructions import InstructionFactory as F, InstructionFields


def _register_alu(op: AluOp, b_negate: bool = False) -> ControlSignals:
    return ControlSignals(kind=InstructionKind.REGISTER_ALU, alu_op=op, b_negate=b_negate,
                          reg_dst=True, reg_write=True)


def _immediate_alu(op: AluOp, b_negate: bool = False) -> ControlSignals:
    return ControlSignals(kind=InstructionKind.IMMEDIATE_ALU, alu_src=True, alu_op=op,
                          b_negate=b_negate, reg_write=True)


# R-format (opcode 0), keyed by funct
R_FORMAT_CONTROL: Dict[int, ControlSignals] = {
    F.FUNCT_SLL:  ControlSignals(kind=InstructionKind.SHIFT, alu_op=AluOp.SLL, reg_dst=True, reg_write=True),
    F.FUNCT_ADD:  _register_alu(AluOp.ADD),
    F.FUNCT_ADDU: _register_alu(AluOp.ADD),
    F.FUNCT_SUB:  _register_alu(AluOp.ADD, b_negate=True),
    F.FUNCT_SUBU: _register_alu(AluOp.ADD, b_negate=True),
    F.FUNCT_AND:  _register_alu(AluOp.AND),
    F.FUNCT_OR:   _register_alu(AluOp.OR),
    F.FUNCT_XOR:  _register_alu(AluOp.XOR),
    F.FUNCT_SLT:  _register_alu(AluOp.SLT, b_negate=True),
}

# Every other format, keyed by opcode
OPCODE_CONTROL: Dict[int, ControlSignals] = {
    F.OP_J:     ControlSignals(kind=InstructionKind.JUMP, jump=True),
    F.OP_BEQ:   ControlSignals(kind=InstructionKind.BRANCH_EQUAL, alu_op=AluOp.ADD, b_negate=True, branch=True),
    F.OP_BNE:   ControlSignals(kind=InstructionKind.BRANCH_NOT_EQUAL, alu_op=AluOp.ADD, b_negate=True, branch=True),
    F.OP_ADDI:  _immediate_alu(AluOp.ADD),
    F.OP_ADDIU: _immediate_alu(AluOp.ADD),
    F.OP_SLTI:  _immediate_alu(AluOp.SLT, b_negate=True),
    F.OP_LUI:   ControlSignals(kind=InstructionKind.LOAD_UPPER_IMMEDIATE, alu_src=True, alu_op=AluOp.ADD,
                               reg_write=True),
    F.OP_LW:    ControlSignals(kind=InstructionKind.LOAD, alu_src=True, alu_op=AluOp.ADD, mem_read=True,
                               mem_to_reg=True, reg_write=True),
    F.OP_SW:    ControlSignals(kind=InstructionKind.STORE, alu_src=True, alu_op=AluOp.ADD, mem_write=True),
}


def fill_cpu_control(fields: InstructionFields) -> Tuple[ControlSignals, bool]:
    """
    Control unit.
    Returns the control vector for the instruction and whether it decoded. An
    unsupported opcode/funct yields the inert vector and False, so nothing
    downstream can act on a half-decoded instruction.
    """
    if fields.opcode == F.OP_R_FORMAT:
        control = R_FORMAT_CONTROL.get(fields.funct)
    else:
        control = OPCODE_CONTROL.get(fields.opcode)

    if control is None:
        return INERT_CONTROL, False
    return control, True
