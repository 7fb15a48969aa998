import pytest

from mips_datapath.backend.assembler import assemble_source
from mips_datapath.backend.executor import HaltReason
from mips_datapath.config import SimulatorConfig
from mips_datapath.state import AppState, DataMemoryState, StepByStepExecutionState

PROGRAM = assemble_source("""
    addi $t0, $zero, 5
    sw   $t0, 4($zero)
    add  $t0, $t0, $zero
    halt
""")


@pytest.fixture
def state():
    s = StepByStepExecutionState()
    s.start(PROGRAM, [0xAA], SimulatorConfig(data_words=16))
    return s


def test_step_before_start():
    with pytest.raises(RuntimeError):
        StepByStepExecutionState().step()


def test_changed_register_is_reported(state):
    state.step()
    assert state.changed_reg == ("$t0", "changed from 0x00000000 to 0x00000005")
    assert state.atomic_mem_transaction is None
    assert state.current_step == 1


def test_store_is_reported(state):
    state.step()
    state.step()
    assert state.changed_reg is None
    assert state.atomic_mem_transaction.address == 4
    assert state.atomic_mem_transaction.data == 5
    assert state.cpu.data_memory.read_word(0) == 0xAA


def test_unchanged_write_is_not_highlighted(state):
    state.step()
    state.step()
    state.step()
    assert state.trace.written_register == (8, 5)
    assert state.changed_reg is None


def test_run_to_halt(state):
    result = state.run()
    assert state.halted
    assert result.halt_reason == HaltReason.DECODE_FAILURE
    assert state.result is result
    assert state.step() is None


def test_start_gives_fresh_cpu(state):
    state.run()
    old_cpu = state.cpu
    state.start(PROGRAM, None, SimulatorConfig(data_words=16))
    assert state.cpu is not old_cpu
    assert not state.halted
    assert state.trace is None
    assert state.cpu.data_memory.read_word(0) == 0


def test_reset(state):
    state.reset()
    assert not state.started
    assert state.current_step == 0


def test_app_state_readiness():
    app = AppState()
    assert not app.is_ready_for_execution()
    app.last_loaded_program = "prog.asm"
    assert app.is_ready_for_execution()


@pytest.mark.parametrize("view, expected", [
    ('HEX', "0x0000000A"),
    ('DEC', "10"),
    ('BIN', "0" * 28 + "1010"),
])
def test_data_rows(view, expected):
    data = DataMemoryState()
    data.words = [0, 10]
    data.view_format = view
    rows = data.get_formatted_data()
    assert rows[1] == {'address': "0x00000004", 'data': expected}
