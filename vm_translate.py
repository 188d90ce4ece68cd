import logging
from pathlib import Path

import click

from vm_codegen import CodeWriter
from vm_errors import TranslationError
from vm_parse import Kind, Parser

log = logging.getLogger(__name__)

LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]

def show(cmd, lines):
    # Like the assembler's --test: the command, then its code
    if cmd.kind is Kind.ARITHMETIC:
        click.echo(cmd.operand1)
    else:
        click.echo(f"{cmd.kind.name.lower()} {cmd.operand1} {cmd.operand2}")
    for line in lines:
        click.echo(f"    {line}")

def translate(source, sink, test: bool = False) -> int:
    # Returns the instruction count; the sink is closed even on errors
    with CodeWriter(sink) as writer:
        parser = Parser(source)
        while parser.has_more():
            parser.advance()
            kind = parser.current_kind()
            try:
                if kind is Kind.ARITHMETIC:
                    lines = writer.emit_arithmetic(parser.operand1())
                elif kind in (Kind.PUSH, Kind.POP):
                    lines = writer.emit_push_pop(kind, parser.operand1(), parser.operand2())
                else:
                    log.warning("line %d: %s commands are not translated, skipped",
                                parser.line_number, kind.name.lower())
                    continue
            except TranslationError as e:
                # the generator does not know which line it was given
                raise type(e)(e.reason, parser.line_number) from e

            if test:
                show(parser.current, lines)
        return writer.instructions

def translate_file(src: Path, out: Path, test: bool = False) -> int:
    log.info("translating %s -> %s", src, out)
    with open(src, "r", encoding="utf-8") as f:
        count = translate(f, open(out, "w", encoding="utf-8"), test)
    click.echo(f"File created: {out} ({count} instructions)")
    return count

def collect(src: Path, out):
    # (input, output) pairs for a file or a directory of .vm files
    if src.is_dir():
        if out is not None:
            raise click.UsageError("--out can only be used with a single .vm file")
        files = sorted(src.glob("*.vm"))
        if not files:
            raise click.ClickException(f"no .vm files in {src}")
        return [(f, f.with_suffix(".asm")) for f in files]

    if src.suffix.lower() != ".vm":
        raise click.UsageError(f"input must be a .vm file: {src}")
    target = Path(out) if out else src.with_suffix(".asm")
    # opening the output truncates it before the source is read
    if target.resolve() == src.resolve():
        raise click.UsageError(f"output would overwrite the input: {src}")
    return [(src, target)]

@click.command()
@click.argument("src", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--out", type=click.Path(dir_okay=False), help="output .asm file")
@click.option("--test", is_flag=True, help="print the code generated for each command")
@click.option("-v", "--verbose", count=True, help="more logging (-vv for debug)")
def main(src, out, test, verbose):
    logging.basicConfig(level=LEVELS[min(verbose, 2)],
                        format="%(levelname)s %(name)s: %(message)s")

    for vm_file, asm_file in collect(src, out):
        try:
            translate_file(vm_file, asm_file, test)
        except TranslationError as e:
            where = f"{vm_file}:{e.line}" if e.line is not None else str(vm_file)
            raise click.ClickException(f"{where}: {e.reason}") from e

if __name__ == "__main__":
    main()
