import csv
import logging

import click

log = logging.getLogger(__name__)

RAM_SIZE = 32768
WORD = 0xFFFF
VAR_BASE = 16

# Predefined Hack symbols
SYMBOLS = {
    "SP": 0, "LCL": 1, "ARG": 2, "THIS": 3, "THAT": 4,
    "SCREEN": 16384, "KBD": 24576,
    **{f"R{i}": i for i in range(16)},
}

# ALU table for the a=0 form; the a=1 form is the same with A replaced by M
COMP = {
    "0":   lambda d, a: 0,
    "1":   lambda d, a: 1,
    "-1":  lambda d, a: -1,
    "D":   lambda d, a: d,
    "A":   lambda d, a: a,
    "!D":  lambda d, a: ~d,
    "!A":  lambda d, a: ~a,
    "-D":  lambda d, a: -d,
    "-A":  lambda d, a: -a,
    "D+1": lambda d, a: d + 1,
    "A+1": lambda d, a: a + 1,
    "D-1": lambda d, a: d - 1,
    "A-1": lambda d, a: a - 1,
    "D+A": lambda d, a: d + a,
    "D-A": lambda d, a: d - a,
    "A-D": lambda d, a: a - d,
    "D&A": lambda d, a: d & a,
    "D|A": lambda d, a: d | a,
}

# Jump conditions on the signed ALU output
JUMP = {
    "":    lambda x: False,
    "JGT": lambda x: x > 0,
    "JEQ": lambda x: x == 0,
    "JGE": lambda x: x >= 0,
    "JLT": lambda x: x < 0,
    "JNE": lambda x: x != 0,
    "JLE": lambda x: x <= 0,
    "JMP": lambda x: True,
}

def to_signed(x: int, bits: int = 16) -> int:
    # unsigned -> signed for values read back from RAM
    x &= (1 << bits) - 1
    if x >= (1 << (bits - 1)):
        x -= (1 << bits)
    return x

def clean(line: str) -> str:
    return line.split("//", 1)[0].strip()

def decode_c(text: str, n: int) -> dict:
    # dest=comp;jump, dest and jump optional
    dest, _, rest = text.rpartition("=")
    comp, _, jump = rest.partition(";")
    comp = comp.replace(" ", "")

    uses_m = "M" in comp
    key = comp.replace("M", "A") if uses_m else comp
    # D+A and A+D are the same instruction
    if key not in COMP and len(key) == 3 and key[1] in "+&|":
        key = key[::-1]
    if key not in COMP:
        raise ValueError(f"line {n}: unknown comp {comp!r}")
    if jump not in JUMP:
        raise ValueError(f"line {n}: unknown jump {jump!r}")
    if any(c not in "ADM" for c in dest) or len(set(dest)) != len(dest):
        raise ValueError(f"line {n}: bad dest {dest!r}")
    return {"op": "C", "dest": dest, "comp": key, "m": uses_m, "jump": jump, "line": n}

def load(text: str) -> list:
    labels = {}
    body = []

    # Pass 1: label addresses
    for i, line in enumerate(text.splitlines(), 1):
        line = clean(line)
        if not line:
            continue
        if line.startswith("(") and line.endswith(")"):
            labels[line[1:-1]] = len(body)
        else:
            body.append((i, line))

    # Pass 2: decode, allocating variables from 16
    symbols = {**SYMBOLS, **labels}
    next_var = VAR_BASE
    prog = []
    for n, line in body:
        if line.startswith("@"):
            name = line[1:]
            if name.isdigit():
                value = int(name)
            else:
                if name not in symbols:
                    symbols[name] = next_var
                    next_var += 1
                value = symbols[name]
            if value > 0x7FFF:
                raise ValueError(f"line {n}: constant {value} does not fit in 15 bits")
            prog.append({"op": "A", "value": value, "line": n})
        else:
            prog.append(decode_c(line, n))
    return prog

def run_program(prog: list, ram: list[int], max_steps: int = 100000) -> int:
    # Runs until pc leaves the program or max_steps; returns executed count
    a = d = pc = 0
    steps = 0

    while 0 <= pc < len(prog) and steps < max_steps:
        ins = prog[pc]
        steps += 1

        if ins["op"] == "A":
            a = ins["value"]
            pc += 1
            continue

        if ins["m"] or "M" in ins["dest"]:
            if not (0 <= a < len(ram)):
                raise ValueError(f"line {ins['line']}: memory access out of range: {a}")

        y = ram[a] if ins["m"] else a
        out = COMP[ins["comp"]](to_signed(d), to_signed(y)) & WORD

        # M is written through the old A, and the jump goes there too
        target = a
        if "M" in ins["dest"]:
            ram[a] = out
        if "D" in ins["dest"]:
            d = out
        if "A" in ins["dest"]:
            a = out

        pc = target if JUMP[ins["jump"]](to_signed(out)) else pc + 1

    if 0 <= pc < len(prog):
        log.warning("stopped after %d steps, pc=%d", steps, pc)
    return steps

def run_text(text: str, ram: list[int] | None = None, max_steps: int = 100000) -> list[int]:
    if ram is None:
        ram = [0] * RAM_SIZE
    run_program(load(text), ram, max_steps)
    return ram

def parse_assignment(t: str) -> tuple[int, int]:
    # SP=256, R5=3, 300=-1
    name, _, value = t.partition("=")
    addr = SYMBOLS[name] if name in SYMBOLS else int(name, 0)
    if not (0 <= addr < RAM_SIZE):
        raise ValueError(f"address out of range: {t}")
    return addr, int(value, 0) & WORD

def dump_memory(mem: list[int], start: int, end: int, path: str) -> None:
    # CSV dump: address,value
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["address", "value"])
        for addr in range(start, end + 1):
            w.writerow([addr, to_signed(mem[addr])])

@click.command()
@click.argument("program_asm", type=click.Path(exists=True, dir_okay=False))
@click.argument("dump_csv", type=click.Path(dir_okay=False))
@click.argument("mem_range")  # start:end
@click.option("--set", "assignments", multiple=True, help="initial RAM value, e.g. SP=256")
@click.option("--steps", default=100000, show_default=True, help="instruction limit")
def main(program_asm, dump_csv, mem_range, assignments, steps):
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    lo, hi = mem_range.split(":")
    start, end = int(lo, 0), int(hi, 0)

    ram = [0] * RAM_SIZE
    try:
        for t in assignments:
            addr, value = parse_assignment(t)
            ram[addr] = value
        prog = load(open(program_asm, "r", encoding="utf-8").read())
        count = run_program(prog, ram, steps)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    dump_memory(ram, start, end, dump_csv)
    click.echo(f"Executed {count} instructions")

if __name__ == "__main__":
    main()
