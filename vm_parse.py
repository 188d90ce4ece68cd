import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, TextIO

from vm_errors import (
    InvalidOperand,
    MalformedCommand,
    MissingOperand,
    NoCurrentCommand,
    NoMoreCommands,
    OperandUnavailable,
    UnknownCommand,
)

log = logging.getLogger(__name__)

COMMENT = "//"

class Kind(Enum):
    ARITHMETIC = auto()
    PUSH = auto()
    POP = auto()
    LABEL = auto()
    GOTO = auto()
    IF = auto()
    FUNCTION = auto()
    CALL = auto()
    RETURN = auto()

ARITHMETIC = {"add", "sub", "neg", "eq", "gt", "lt", "and", "or", "not"}

# Keywords that take operands
KEYWORDS = {
    "push": Kind.PUSH,
    "pop": Kind.POP,
    "label": Kind.LABEL,
    "goto": Kind.GOTO,
    "if": Kind.IF,
    "function": Kind.FUNCTION,
    "call": Kind.CALL,
}

# Kinds that carry a numeric second operand
WITH_INDEX = {Kind.PUSH, Kind.POP, Kind.FUNCTION, Kind.CALL}

@dataclass(frozen=True)
class ClassifiedCommand:
    kind: Kind
    operand1: str | None = None
    operand2: int | None = None
    line: int = 0

def clean(line: str) -> str:
    # Drop the comment and surrounding whitespace
    return line.split(COMMENT, 1)[0].strip()

def num(t: str, n: int) -> int:
    # Only plain non-negative decimals: 0, 7, 32767
    if not (t.isascii() and t.isdigit()):
        raise InvalidOperand(f"expected a non-negative integer, got {t!r}", n)
    return int(t)

def parse_line(line: str, n: int = 0):
    # None for lines that are empty once the comment is removed
    line = clean(line)
    if not line:
        return None

    parts = line.split(" ")
    if len(parts) > 3:
        raise MalformedCommand(f"too many tokens in {line!r}", n)

    word = parts[0]
    if word in ARITHMETIC:
        return ClassifiedCommand(Kind.ARITHMETIC, word, line=n)
    if word == "return":
        return ClassifiedCommand(Kind.RETURN, line=n)
    if word not in KEYWORDS:
        raise UnknownCommand(f"unknown command {word!r}", n)

    kind = KEYWORDS[word]
    if len(parts) < 2 or not parts[1]:
        raise MissingOperand(f"{word} needs an argument", n)

    index = None
    if kind in WITH_INDEX:
        if len(parts) < 3 or not parts[2]:
            raise InvalidOperand(f"{word} needs a numeric second argument", n)
        index = num(parts[2], n)

    return ClassifiedCommand(kind, parts[1], index, n)

# Comments are stripped up front, each command is classified on advance()
class Parser:
    def __init__(self, stream: TextIO):
        self.lines = []
        for i, raw in enumerate(stream, 1):
            code = clean(raw)
            if code:
                self.lines.append((i, code))
        self.pos = 0
        self.current: ClassifiedCommand | None = None
        log.debug("%d commands after preprocessing", len(self.lines))

    def has_more(self) -> bool:
        return self.pos < len(self.lines)

    def advance(self) -> None:
        if not self.has_more():
            raise NoMoreCommands("no commands left to advance to")
        n, code = self.lines[self.pos]
        self.pos += 1
        self.current = parse_line(code, n)

    def _command(self) -> ClassifiedCommand:
        if self.current is None:
            raise NoCurrentCommand("advance() has not been called yet")
        return self.current

    @property
    def line_number(self):
        return self.current.line if self.current is not None else None

    def current_kind(self) -> Kind:
        return self._command().kind

    def operand1(self) -> str:
        cmd = self._command()
        if cmd.kind is Kind.RETURN:
            raise OperandUnavailable("return has no arguments", cmd.line)
        return cmd.operand1

    def operand2(self) -> int:
        cmd = self._command()
        if cmd.kind not in WITH_INDEX:
            raise OperandUnavailable(
                f"{cmd.kind.name.lower()} has no numeric argument", cmd.line)
        return cmd.operand2

    def __iter__(self) -> Iterator[ClassifiedCommand]:
        while self.has_more():
            self.advance()
            yield self.current
