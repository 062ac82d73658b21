"""Primitive codecs shared by the parser and the serializer.

Numbers, strings, param lists, struct lines and base64 wrapping. Everything
here is a pure function.
"""

import math
import re
from decimal import Decimal

from .errors import EncodingError

INDENT = "  "
B64_WIDTH = 128
DELIMITERS = ('"', "'", "`")

NUMBER_RE = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?")


def indent(level: int) -> str:
    return INDENT * level


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


def is_number(value) -> bool:
    """True for int/float params (bool is not a number in this format)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_number(value) -> str:
    """Canonical decimal text: no exponent, no trailing zeros, ``-0`` is ``0``."""
    if not is_number(value):
        raise EncodingError(f"format_number was not passed a number: {value!r}")
    if isinstance(value, int):
        return str(value)
    if not math.isfinite(value):
        raise EncodingError(f"cannot format non-finite number {value!r}")
    if value == 0:
        return "0"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def parse_number(text: str):
    """Return the int/float spelled by ``text``, or None if it is not a number."""
    if not NUMBER_RE.fullmatch(text):
        return None
    if "." in text:
        return float(text)
    return int(text)


# ---------------------------------------------------------------------------
# Strings
# ---------------------------------------------------------------------------


def has_all_delimiters(s: str) -> bool:
    return all(d in s for d in DELIMITERS)


def fold_backticks(s: str) -> str:
    """Lossy inline form of a string that contains every quote delimiter."""
    return s.replace("`", "'")


def format_string(s) -> str:
    """Quote ``s`` only when it would not survive as a bare token.

    >>> format_string("GUITAR"), format_string("ok !"), format_string('"')
    ('GUITAR', '"ok !"', '\\'"\\'')
    """
    if not isinstance(s, str):
        raise EncodingError(f"format_string was not passed a string: {s!r}")

    if " " not in s and s and s[0] not in DELIMITERS:
        return s
    if '"' not in s:
        return f'"{s}"'
    if "'" not in s:
        return f"'{s}'"
    if "`" not in s:
        return f"`{s}`"
    return f"`{fold_backticks(s)}`"


def format_param(param) -> str:
    if is_number(param):
        return format_number(param)
    if isinstance(param, str):
        return format_string(param)
    raise EncodingError(f"params must be numbers or strings, got {param!r}")


def format_params(params) -> str:
    """Render params for a header or struct line, each preceded by a space."""
    return "".join(" " + format_param(p) for p in params)


def dump_struct(token: str, params, level: int = 0) -> str:
    """Render a single struct line at ``level``.

    Strings that contain all three delimiters are folded inline; their raw
    value follows as a ``|`` block with the same token one level deeper.
    """
    if not isinstance(token, str) or not token:
        raise EncodingError(f"struct token must be a non-empty string, got {token!r}")
    return (
        indent(level)
        + token
        + format_params(params)
        + side_channel_blocks(token, params, level + 1)
    )


def side_channel_blocks(token: str, params, level: int) -> str:
    """``|`` blocks carrying the raw value of every all-delimiter string."""
    out = ""
    for p in params:
        if isinstance(p, str) and has_all_delimiters(p):
            out += f"\n{indent(level)}<{token}\n{indent(level + 1)}|{p}\n{indent(level)}>"
    return out


# ---------------------------------------------------------------------------
# Base64 payloads
# ---------------------------------------------------------------------------


def split_base64(b64: str, width: int = B64_WIDTH) -> list[str]:
    """Wrap a flat base64 string into ``width``-character lines.

    The last line may be shorter; an exact multiple of ``width`` produces no
    trailing empty line, and an empty string produces no lines at all.
    """
    return [b64[i : i + width] for i in range(0, len(b64), width)]


def join_base64(lines) -> str:
    return "".join(line.strip() for line in lines)


def base64_byte_length(b64: str) -> int:
    """Number of bytes encoded by ``b64`` (computed from length and padding)."""
    if b64.endswith("=="):
        pad = 2
    elif b64.endswith("="):
        pad = 1
    else:
        pad = 0
    return math.floor(len(b64) / 4 * 3 + 0.5) - pad
