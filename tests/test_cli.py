import json

import pytest

from mips_datapath.cli import EXIT_CYCLE_LIMIT, EXIT_ERROR, EXIT_OK, main


@pytest.fixture
def program(tmp_path):
    path = tmp_path / "prog.asm"
    path.write_text("addi $t1, $zero, 5\naddi $v0, $t1, 10\nsw $v0, 8($zero)\nhalt\n")
    return path


def test_run(program, capsys):
    assert main(["run", str(program), "--dump-memory", "3"]) == EXIT_OK
    out = capsys.readouterr().out
    assert "Halted on an undecodable instruction after 3 cycles" in out
    assert "Last instruction: 0x00000008: sw" in out
    assert "$v0   ($02) = 0x0000000F (15)" in out
    assert "0x00000008: 0x0000000F" in out


def test_run_with_data_image(tmp_path, capsys):
    prog = tmp_path / "p.asm"
    prog.write_text("lw $t0, 4($zero)\n")
    data = tmp_path / "d.hex"
    data.write_text("0\n0000002A\n")
    assert main(["run", str(prog), "--data", str(data)]) == EXIT_OK
    out = capsys.readouterr().out
    assert "PC left the program image" in out
    assert "0x0000002A (42)" in out


def test_run_cycle_limit(tmp_path, capsys):
    prog = tmp_path / "loop.asm"
    prog.write_text("loop: b loop\n")
    assert main(["run", str(prog), "--max-cycles", "10"]) == EXIT_CYCLE_LIMIT
    assert "cycle limit" in capsys.readouterr().out


def test_run_config_file(tmp_path, program, capsys):
    cfg = tmp_path / "sim.json"
    cfg.write_text(json.dumps({"max_cycles": 2}))
    assert main(["run", str(program), "--config", str(cfg)]) == EXIT_CYCLE_LIMIT


def test_run_trace_goes_to_stderr(program, capsys):
    main(["run", str(program), "--trace"])
    captured = capsys.readouterr()
    assert "addi" in captured.err
    assert "addi" not in captured.out


def test_run_trace_logs_register_diffs(tmp_path, capsys):
    prog = tmp_path / "one.asm"
    prog.write_text("addi $t0, $zero, 1\nhalt\n")
    assert main(["run", str(prog), "--trace"]) == EXIT_OK
    err = capsys.readouterr().err
    assert "$08: 0x00000000 -> 0x00000001" in err


def test_run_rejects_mistyped_config(tmp_path, program, capsys):
    cfg = tmp_path / "sim.json"
    cfg.write_text(json.dumps({"data_words": "lots"}))
    assert main(["run", str(program), "--config", str(cfg)]) == EXIT_ERROR
    assert "error: data_words must be an integer" in capsys.readouterr().err


def test_run_errors(tmp_path, capsys):
    assert main(["run", str(tmp_path / "missing.bin")]) == EXIT_ERROR
    assert "error:" in capsys.readouterr().err

    prog = tmp_path / "fault.asm"
    prog.write_text("lw $t0, 400($zero)\n")
    assert main(["run", str(prog), "--data-words", "4"]) == EXIT_ERROR
    assert "Data memory access" in capsys.readouterr().err


def test_asm_then_disasm(program, tmp_path, capsys):
    image = tmp_path / "prog.bin"
    assert main(["asm", str(program), "-o", str(image)]) == EXIT_OK
    assert image.read_bytes()[:4] == b"\x05\x00\x09\x20"

    assert main(["disasm", str(image)]) == EXIT_OK
    lines = capsys.readouterr().out.splitlines()
    assert lines[-4].startswith("0x00000000: 20090005  addi")
    assert lines[-1].endswith("syscall")


def test_asm_hex_output(program, tmp_path):
    image = tmp_path / "prog.hex"
    assert main(["asm", str(program), "--hex", "-o", str(image)]) == EXIT_OK
    assert image.read_text().splitlines()[0] == "20090005"


def test_asm_error(tmp_path, capsys):
    src = tmp_path / "bad.asm"
    src.write_text("addi $t0, $t1\n")
    assert main(["asm", str(src), "-o", str(tmp_path / "x.bin")]) == EXIT_ERROR
    assert "line 1" in capsys.readouterr().err
