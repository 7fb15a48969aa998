import pytest

from mips_datapath.backend.schemes import (
    AluResult,
    AtomicMemTransaction,
    DataMemory,
    MemResult,
    MemoryAccessError,
    RegisterFile,
)
from mips_datapath.backend.instructions import extract_instruction_fields
from mips_datapath.backend.control import fill_cpu_control
from mips_datapath.backend.cpu_model import (
    CPUModel,
    execute_mem,
    execute_update_regs,
    get_instruction,
    get_next_pc,
)


def decode(word):
    fields = extract_instruction_fields(word)
    control, decoded = fill_cpu_control(fields)
    assert decoded
    return control, fields


# --- Memory stage ---

def test_load_reads_word_at_byte_address():
    memory = DataMemory(size=8, words=[0, 0, 0xCAFEBABE])
    control, _ = decode(0x8D090008)  # lw $t1, 8($t0)
    out = execute_mem(control, AluResult(8, False), 0, memory)
    assert out.read_val == 0xCAFEBABE
    assert not out.transaction.occurred


def test_store_writes_rt_value():
    memory = DataMemory(size=8)
    control, _ = decode(0xAD09FFFC)  # sw $t1, -4($t0)
    out = execute_mem(control, AluResult(12, False), 0x1234, memory)
    assert out.read_val == 0
    assert memory.read_word(3) == 0x1234
    assert out.transaction == AtomicMemTransaction(occurred=True, address=12, data=0x1234)


def test_non_memory_instruction_leaves_memory_alone():
    memory = DataMemory(size=4, words=[1, 2, 3, 4])
    control, _ = decode(0x012A4020)
    out = execute_mem(control, AluResult(0xFFFFFFF0, False), 99, memory)
    assert out == MemResult(0)
    assert memory.words == [1, 2, 3, 4]


def test_out_of_range_access_fails_loudly():
    memory = DataMemory(size=4)
    control, _ = decode(0x8D090008)
    with pytest.raises(MemoryAccessError):
        execute_mem(control, AluResult(16, False), 0, memory)


# --- Next PC ---

def test_sequential():
    control, fields = decode(0x012A4020)
    assert get_next_pc(fields, control, False, 0x100) == 0x104


@pytest.mark.parametrize("word, zero, expected", [
    (0x1109FFFE, True, 0x10C),    # beq, equal: taken backwards
    (0x1109FFFE, False, 0x114),   # beq, not equal
    (0x1509FFFE, False, 0x10C),   # bne, not equal: taken
    (0x1509FFFE, True, 0x114),    # bne, equal
    (0x11090003, True, 0x120),    # beq forward
])
def test_branches(word, zero, expected):
    control, fields = decode(word)
    assert get_next_pc(fields, control, zero, 0x110) == expected


@pytest.mark.parametrize("pc, address, expected", [
    (0x00000000, 0x0000004, 0x00000010),
    (0x00400000, 0x0100000, 0x00400000),
    (0x1FFFFFF0, 0x3FFFFFF, 0x1FFFFFFC),
    # PC+4 crosses into the next 256 MiB region
    (0x0FFFFFFC, 0x0000001, 0x10000004),
])
def test_jump_target(pc, address, expected):
    control, fields = decode((0x02 << 26) | address)
    assert get_next_pc(fields, control, False, pc) == expected


def test_jump_ignores_zero_flag():
    control, fields = decode((0x02 << 26) | 8)
    assert get_next_pc(fields, control, True, 0) == 0x20


# --- Write back ---

def test_rd_destination_from_alu():
    registers = RegisterFile()
    control, fields = decode(0x012A4020)  # add $t0, ...
    written = execute_update_regs(fields, control, AluResult(42, False), MemResult(7), registers)
    assert written == (8, 42)
    assert registers[8] == 42


def test_rt_destination_from_memory():
    registers = RegisterFile()
    control, fields = decode(0x8D090008)  # lw $t1, 8($t0)
    written = execute_update_regs(fields, control, AluResult(8, False), MemResult(0xBEEF), registers)
    assert written == (9, 0xBEEF)
    assert registers[9] == 0xBEEF


def test_no_write_without_reg_write():
    registers = RegisterFile()
    control, fields = decode(0xAD09FFFC)
    assert execute_update_regs(fields, control, AluResult(1, False), MemResult(2), registers) is None
    assert registers.snapshot() == [0] * 32


def test_register_zero_is_never_written():
    registers = RegisterFile()
    control, fields = decode(0x20000005)  # addi $zero, $zero, 5
    assert execute_update_regs(fields, control, AluResult(5, False), MemResult(0), registers) is None
    assert registers[0] == 0


# --- CPUModel ---

def test_fetch_uses_word_index():
    cpu = CPUModel(data_words=4)
    cpu.reset(program=[0x11, 0x22, 0x33])
    assert get_instruction(8, cpu.instruction_memory) == 0x33


def test_reset_with_address_mapping():
    cpu = CPUModel(data_words=8)
    cpu.reset(program=[0], initial_memory={0x10: 0xAB, 0x4: 0xCD}, entry_point=4)
    assert cpu.data_memory.read_word(4) == 0xAB
    assert cpu.data_memory.read_word(1) == 0xCD
    assert cpu.pc == 4
    assert cpu.cycle_count == 0


def test_instances_are_isolated():
    a = CPUModel(data_words=4)
    b = CPUModel(data_words=4)
    a.registers.write(3, 9)
    a.data_memory.write_word(0, 9)
    assert b.registers[3] == 0
    assert b.data_memory.read_word(0) == 0
