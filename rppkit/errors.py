"""Exception types raised by the rppkit codec.

Every error propagates to the caller; nothing in the codec recovers from one.
"""


class RppError(Exception):
    """Base class for all rppkit errors."""


class ValidationError(RppError, TypeError):
    """Malformed Node/Struct construction arguments."""


class EncodingError(RppError, TypeError, ValueError):
    """A value cannot be serialized, or a binary header cannot be decoded."""


class LogicError(RppError, RuntimeError):
    """Programmer-usage error, e.g. appending ``None`` as a child."""


class ParseError(RppError, ValueError):
    """The grammar could not match the input.

    Locations are 1-based. ``end_line``/``end_column`` close the offending
    range and default to the start position.
    """

    def __init__(self, message, line, column, end_line=None, end_column=None):
        self.message = message
        self.line = line
        self.column = column
        self.end_line = line if end_line is None else end_line
        self.end_column = column if end_column is None else end_column
        super().__init__(f"{message} (line {line}, column {column})")

    @property
    def location(self) -> tuple[int, int, int, int]:
        return (self.line, self.column, self.end_line, self.end_column)


def describe_parse_error(source: str, error: ParseError, context: int = 2) -> str:
    """Render ``error`` with ``context`` source lines before and after it.

    The offending line is marked with ``>`` and a caret under the column,
    e.g.::

          3 |   VOLUME 11
        > 4 |   NAME "oops
            |        ^
          5 | >
    """
    lines = source.split("\n")
    first = max(1, error.line - context)
    last = min(len(lines), error.end_line + context)
    width = len(str(last))

    out = [f"error: {error.message}"]
    for n in range(first, last + 1):
        text = lines[n - 1].rstrip("\r") if n <= len(lines) else ""
        marker = ">" if error.line <= n <= error.end_line else " "
        out.append(f"{marker} {n:>{width}} | {text}")
        if n == error.line:
            span = 1
            if error.end_line == error.line and error.end_column > error.column:
                span = error.end_column - error.column
            out.append(f"  {' ' * width} | {' ' * (error.column - 1)}{'^' * span}")
    return "\n".join(out)
