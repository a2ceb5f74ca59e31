"""Error taxonomy for the StepJS interpreter.

Every fault the interpreter can raise derives from `InterpreterError`. The
`name` class attribute mirrors the JavaScript error constructor name that the
debugger UI shows (``TypeError``, ``ReferenceError`` ...). The session converts
these exceptions into the structured ``{name, message, line}`` dict it
publishes; nothing in this module is expected to reach API callers as a raised
exception.
"""

from typing import List, Optional


class InterpreterError(Exception):
    """Base class for faults raised while loading or executing a program.

    Attributes:
        line: 1-based source line where the fault happened. Filled in by the
            statement executor when the exception crosses an instruction.
        call_stack: activation labels at the moment of the fault.
        hint: optional short suggestion surfaced alongside the message.
    """

    name = "Error"

    def __init__(self, message: str, *, hint: Optional[str] = None, line: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.line = line
        self.call_stack: Optional[List[str]] = None


class JSSyntaxError(InterpreterError):
    name = "SyntaxError"


class JSReferenceError(InterpreterError):
    name = "ReferenceError"


class JSTypeError(InterpreterError):
    name = "TypeError"


class JSRangeError(InterpreterError):
    name = "RangeError"


class UnsupportedSyntax(InterpreterError):
    """Raised for statements outside the supported subset (strict mode only)."""

    name = "UnsupportedSyntax"


class StepLimitExceeded(InterpreterError):
    """Raised when a run or a nested call exhausts its step or time budget."""

    name = "Timeout"


class OutputLimitExceeded(InterpreterError):
    name = "OutputLimit"
