class TinyBoyException(Exception):
    pass


class Halted(TinyBoyException):
    """Raised by an emulator when the MCU can no longer make progress."""

    pass


class HexFormatError(TinyBoyException):
    def __init__(self, message, line_number=None):
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number


class AnalysisError(TinyBoyException):
    pass


class DecodeError(AnalysisError):
    def __init__(self, address: int, message="unknown opcode", word=None):
        detail = f"{message} at 0x{address:04x}"
        if word is not None:
            detail += f" (0x{word:04x})"
        super().__init__(detail)
        self.address = address
        self.word = word


class IndirectControlFlowError(AnalysisError):
    def __init__(self, address: int, opcode):
        super().__init__(
            f"indirect control flow ({opcode.name}) at 0x{address:04x} "
            "cannot be statically enumerated"
        )
        self.address = address
        self.opcode = opcode
