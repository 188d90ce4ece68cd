import logging
from typing import TextIO

from vm_errors import InvalidDirection, InvalidOperand, UnsupportedArithmetic, UnsupportedSegment
from vm_parse import Kind

log = logging.getLogger(__name__)

# Binary operators: second operand ends up in D, first one at M
BINARY = {
    "add": "M=D+M",
    "sub": "M=M-D",
    "and": "M=D&M",
    "or":  "M=D|M",
}

# Unary operators rewrite the top cell in place
UNARY = {
    "not": ["@SP", "A=M-1", "M=!M"],
    "neg": ["D=0", "@SP", "A=M-1", "M=D-M"],
}

# Comparisons: jump to FALSE when x-y fails the test
COMPARE = {
    "eq": "JNE",
    "gt": "JLE",
    "lt": "JGE",
}

# Segments whose base address is stored in a register
POINTER_BASES = {
    "local":    "LCL",
    "argument": "ARG",
    "this":     "THIS",
    "that":     "THAT",
}

TEMP_BASE = 5
STATIC_BASE = 16
SCRATCH = "R13"

# Largest index each fixed-size segment accepts
LIMITS = {
    "constant": 0x7FFF,  # @value holds 15 bits
    "temp":     7,       # R5..R12
    "static":   239,     # RAM[16..255]
}

def check_index(segment: str, index: int):
    if segment in LIMITS and index > LIMITS[segment]:
        raise InvalidOperand(f"{segment} index {index} is out of range 0..{LIMITS[segment]}")

def pop_two():
    # SP -= 1, D = y, A -> x
    return ["@SP", "AM=M-1", "D=M", "A=A-1"]

def push_d():
    # *SP = D, SP += 1
    return ["@SP", "A=M", "M=D", "@SP", "M=M+1"]

def compare_lines(jump: str, n: int):
    return [
        *pop_two(),
        "D=M-D",
        f"@FALSE{n}",
        f"D;{jump}",
        "@SP", "A=M-1", "M=-1",
        f"@CONTINUE{n}",
        "0;JMP",
        f"(FALSE{n})",
        "@SP", "A=M-1", "M=0",
        f"(CONTINUE{n})",
    ]

def arithmetic_lines(mnemonic: str, label_id: int = 0):
    # label_id only matters for eq/gt/lt, which need two unique labels
    if mnemonic in BINARY:
        return [*pop_two(), BINARY[mnemonic]]
    if mnemonic in UNARY:
        return list(UNARY[mnemonic])
    if mnemonic in COMPARE:
        return compare_lines(COMPARE[mnemonic], label_id)
    raise UnsupportedArithmetic(f"unknown arithmetic command {mnemonic!r}")

def address_lines(segment: str, index: int):
    # Leaves the target address of segment[index] in D
    check_index(segment, index)
    if segment in POINTER_BASES:
        return [f"@{POINTER_BASES[segment]}", "D=M", f"@{index}", "D=D+A"]
    if segment == "temp":
        return [f"@R{TEMP_BASE}", "D=A", f"@{index}", "D=D+A"]
    if segment == "pointer":
        return ["@THIS" if index == 0 else "@THAT", "D=A"]
    if segment == "static":
        return [f"@{STATIC_BASE + index}", "D=A"]
    raise UnsupportedSegment(f"unknown segment {segment!r}")

def push_lines(segment: str, index: int):
    check_index(segment, index)
    if segment == "constant":
        load = [f"@{index}", "D=A"]
    elif segment in POINTER_BASES:
        load = [f"@{POINTER_BASES[segment]}", "D=M", f"@{index}", "A=D+A", "D=M"]
    elif segment == "temp":
        load = [f"@R{TEMP_BASE}", "D=A", f"@{index}", "A=D+A", "D=M"]
    elif segment == "pointer":
        load = ["@THIS" if index == 0 else "@THAT", "D=M"]
    elif segment == "static":
        load = [f"@{STATIC_BASE + index}", "D=M"]
    else:
        raise UnsupportedSegment(f"unknown segment {segment!r}")
    return [*load, *push_d()]

def pop_lines(segment: str, index: int):
    if segment == "constant":
        raise UnsupportedSegment("cannot pop into the constant segment")
    return [
        *address_lines(segment, index),
        f"@{SCRATCH}", "M=D",
        "@SP", "AM=M-1", "D=M",
        f"@{SCRATCH}", "A=M", "M=D",
    ]

def is_label(line: str) -> bool:
    return line.startswith("(")

# Owns the sink and the comparison label counter; each writer starts from 0
class CodeWriter:

    def __init__(self, sink: TextIO):
        self.sink = sink
        self.labels = 0
        self.instructions = 0
        self.closed = False

    def write(self, lines) -> None:
        for line in lines:
            self.sink.write(line + "\n")
            if not is_label(line):
                self.instructions += 1

    def emit_arithmetic(self, mnemonic: str):
        lines = arithmetic_lines(mnemonic, self.labels)
        if mnemonic in COMPARE:
            self.labels += 1
        self.write(lines)
        return lines

    def emit_push_pop(self, direction: Kind, segment: str, index: int):
        if direction is Kind.PUSH:
            lines = push_lines(segment, index)
        elif direction is Kind.POP:
            lines = pop_lines(segment, index)
        else:
            raise InvalidDirection(f"expected push or pop, got {direction!r}")
        self.write(lines)
        return lines

    def close(self) -> None:
        if self.closed:
            return
        self.sink.flush()
        self.sink.close()
        self.closed = True
        log.debug("output closed after %d instructions", self.instructions)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
