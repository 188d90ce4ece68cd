# Errors raised by the VM parser and code generator.
# The core only raises; printing and exit codes belong to the CLI.

class TranslationError(ValueError):
    def __init__(self, message: str, line: int | None = None):
        self.reason = message
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)

class MalformedCommand(TranslationError):
    pass

class UnknownCommand(TranslationError):
    pass

class MissingOperand(TranslationError):
    pass

class InvalidOperand(TranslationError):
    pass

class NoMoreCommands(TranslationError):
    pass

class NoCurrentCommand(TranslationError):
    pass

class OperandUnavailable(TranslationError):
    # operand1 on return, operand2 on anything but push/pop/function/call
    pass

class UnsupportedArithmetic(TranslationError):
    pass

class UnsupportedSegment(TranslationError):
    pass

class InvalidDirection(TranslationError):
    pass
