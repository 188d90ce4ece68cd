import csv

import pytest
from click.testing import CliRunner

from hack_run import RAM_SIZE, load, main, parse_assignment, run_program, run_text, to_signed


def test_to_signed():
    assert to_signed(0xFFFF) == -1
    assert to_signed(0x7FFF) == 32767
    assert to_signed(0x8000) == -32768


def test_labels_and_variables():
    prog = load("@i\nM=1\n(LOOP)\n@LOOP\n0;JMP\n@j\nD=A\n")
    assert prog[0] == {"op": "A", "value": 16, "line": 1}
    assert prog[2]["value"] == 2
    assert prog[4]["value"] == 17


def test_predefined_symbols():
    prog = load("@SP\n@THAT\n@R13\n@SCREEN\n")
    assert [p["value"] for p in prog] == [0, 4, 13, 16384]


@pytest.mark.parametrize("text", ["D=M*D", "X=D", "DD=1", "0;JXX", "@40000"])
def test_bad_instructions(text):
    with pytest.raises(ValueError):
        load(text)


def test_operand_order_is_normalised():
    assert load("D=M+D")[0]["comp"] == load("D=D+M")[0]["comp"]


def test_loop_sums_to_ten():
    # sum = 1 + 2 + 3 + 4
    text = "\n".join([
        "@i", "M=1", "@sum", "M=0",
        "(LOOP)",
        "@i", "D=M", "@5", "D=D-A", "@END", "D;JGE",
        "@i", "D=M", "@sum", "M=D+M", "@i", "M=M+1",
        "@LOOP", "0;JMP",
        "(END)",
    ])
    ram = run_text(text)
    assert ram[17] == 10


def test_step_limit():
    ram = [0] * RAM_SIZE
    steps = run_program(load("(X)\n@X\n0;JMP\n"), ram, max_steps=50)
    assert steps == 50


def test_memory_out_of_range():
    with pytest.raises(ValueError):
        run_text("D=-1\nA=D\nM=1\n")


def test_parse_assignment():
    assert parse_assignment("SP=256") == (0, 256)
    assert parse_assignment("300=-1") == (300, 0xFFFF)
    with pytest.raises(ValueError):
        parse_assignment("99999=1")


def test_cli_dump(tmp_path):
    prog = tmp_path / "p.asm"
    prog.write_text("@SP\nA=M\nM=-1\n@SP\nM=M+1\n")
    dump = tmp_path / "dump.csv"
    result = CliRunner().invoke(main, [str(prog), str(dump), "256:257", "--set", "SP=256"])
    assert result.exit_code == 0, result.output
    rows = list(csv.reader(dump.open()))
    assert rows == [["address", "value"], ["256", "-1"], ["257", "0"]]


def test_cli_bad_program(tmp_path):
    prog = tmp_path / "p.asm"
    prog.write_text("D=Q\n")
    result = CliRunner().invoke(main, [str(prog), str(tmp_path / "d.csv"), "0:1"])
    assert result.exit_code == 1
    assert "unknown comp" in result.output


def test_jump_uses_a_before_it_is_overwritten():
    # A=1;JMP must land on 4 (the old A), not loop on itself at 1
    text = "@4\nA=1;JMP\nD=0\nD=0\n@R0\nM=1\n"
    ram = [0] * RAM_SIZE
    run_program(load(text), ram, max_steps=20)
    assert ram[0] == 1
