"""Recursive-descent parser for RPP text.

Structure comes from ``<``/``>`` nesting, never from column position, so any
consistent (or inconsistent) indentation parses. Each block is one frame of
the descent: header line, then body lines until a line holding only ``>``.

Besides whole documents the parser can start at the smaller rules (``int``,
``decimal``, ``string``, ``params``, ``b64``) so each can be tested alone.
"""

import logging
import re

from .codec import (
    B64_WIDTH,
    DELIMITERS,
    fold_backticks,
    has_all_delimiters,
    parse_number,
)
from .config import get_settings
from .errors import LogicError, ParseError
from .node import Node, Struct, TextBlock

logger = logging.getLogger(__name__)

# Blocks whose base64 body lines are payload rather than structs.
BINARY_TOKENS = frozenset(
    {
        "VST",
        "AU",
        "DX",
        "LV2",
        "CLAP",
        "RECORD_CFG",
        "RENDER_CFG",
        "APPLYFX_CFG",
    }
)
# Blocks whose body is |-prefixed free text.
TEXT_TOKENS = frozenset({"NOTES"})
# Structs whose params stay strings even when they look like numbers.
STRING_TOKENS = frozenset({"NAME", "FILE", "PRESETNAME"})

START_RULES = ("object", "document", "int", "decimal", "string", "params", "b64")

_TOKEN_RE = re.compile(r"[^\s<>]+")
_BARE_RE = re.compile(r"\S+")
_WS_RE = re.compile(r"[ \t]+")
_INT_RE = re.compile(r"-?(?:0|[1-9][0-9]*)")
_DECIMAL_RE = re.compile(r"-?(?:0|[1-9][0-9]*)\.[0-9]+")
_B64_RE = re.compile(r"[A-Za-z0-9+/]+={0,2}")


class _Lines:
    """Cursor over input lines. Line numbers handed out are 1-based."""

    def __init__(self, text: str):
        self.lines = [
            line[:-1] if line.endswith("\r") else line for line in text.split("\n")
        ]
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.lines)

    def peek(self) -> tuple[int, str]:
        return self.pos + 1, self.lines[self.pos]

    def ahead(self, offset: int) -> str | None:
        i = self.pos + offset
        return self.lines[i] if i < len(self.lines) else None

    def advance(self, count: int = 1):
        self.pos += count

    def skip_blank(self):
        while not self.at_end() and not self.lines[self.pos].strip():
            self.pos += 1


def _lead(line: str) -> int:
    return len(line) - len(line.lstrip())


class Parser:
    """Configurable RPP parser.

    ``binary_tokens``, ``text_tokens`` and ``string_tokens`` select the block
    kinds that get special body handling; ``max_depth`` bounds nesting so
    hostile input fails with a ParseError instead of exhausting the stack.
    """

    def __init__(
        self,
        binary_tokens=BINARY_TOKENS,
        text_tokens=TEXT_TOKENS,
        string_tokens=STRING_TOKENS,
        max_depth: int | None = None,
    ):
        self.binary_tokens = frozenset(binary_tokens)
        self.text_tokens = frozenset(text_tokens)
        self.string_tokens = frozenset(string_tokens)
        self.max_depth = get_settings().max_depth if max_depth is None else max_depth

    def parse(self, text: str, start_rule: str = "object"):
        if start_rule in ("object", "document"):
            return self._document(text)
        if start_rule == "int":
            return self._number(text, _INT_RE, int)
        if start_rule == "decimal":
            return self._number(text, _DECIMAL_RE, float)
        if start_rule == "string":
            return self._string(text)
        if start_rule == "params":
            return self._params_rule(text)
        if start_rule == "b64":
            return self._b64(text)
        raise LogicError(f"unknown start rule {start_rule!r} (known: {START_RULES})")

    # -- Sub-grammar entry points -------------------------------------------------

    def _number(self, text, pattern, kind):
        if not pattern.fullmatch(text):
            raise ParseError(
                f"expected {kind.__name__} number, got {text!r}",
                1,
                1,
                1,
                len(text) + 1,
            )
        return kind(text)

    def _string(self, text):
        if not text:
            raise ParseError("expected a string", 1, 1)
        value, end = self._param(text, 0, 1, strings_only=True)
        if end != len(text):
            raise ParseError("unexpected text after string", 1, end + 1)
        return value

    def _params_rule(self, text):
        return self._params(text, 0, 1, strings_only=False)

    def _b64(self, text):
        out = []
        for n, line in enumerate(text.split("\n"), start=1):
            stripped = line.strip()
            if not stripped:
                continue
            if not _B64_RE.fullmatch(stripped):
                raise ParseError(
                    "expected base64 payload", n, _lead(line) + 1, n, len(line) + 1
                )
            out.append(stripped)
        return "".join(out)

    # -- Blocks ----------------------------------------------------------------------

    def _document(self, text):
        cur = _Lines(text)
        cur.skip_blank()
        if cur.at_end():
            raise ParseError("expected '<' to open a block", 1, 1)
        node = self._object(cur, 1)
        cur.skip_blank()
        if not cur.at_end():
            n, line = cur.peek()
            raise ParseError(
                "unexpected content after the closing '>'",
                n,
                _lead(line) + 1,
                n,
                len(line) + 1,
            )
        logger.debug(
            "parsed <%s> spanning %d lines (%d blocks)",
            node.token,
            len(cur.lines),
            sum(1 for _ in node.walk()),
        )
        return node

    def _object(self, cur: _Lines, depth: int) -> Node:
        open_line, line = cur.peek()
        open_col = _lead(line) + 1
        if depth > self.max_depth:
            raise ParseError(
                f"blocks nested deeper than {self.max_depth}", open_line, open_col
            )
        token, params = self._header(line, open_line)
        cur.advance()

        if token in self.text_tokens:
            return self._text_body(cur, token, params, open_line, open_col)

        node = Node(token, params)
        binary = token in self.binary_tokens
        owner = (token, params)  # line whose | side channel may follow
        pending = []  # lines of the base64 chunk being read

        while True:
            if cur.at_end():
                raise ParseError(
                    f"<{token} is never closed",
                    open_line,
                    open_col,
                    len(cur.lines),
                    len(cur.lines[-1]) + 1,
                )
            n, line = cur.peek()
            stripped = line.strip()
            col = _lead(line) + 1

            if not stripped:
                cur.advance()
            elif stripped == ">":
                cur.advance()
                break
            elif stripped.startswith(">"):
                raise ParseError(
                    "unexpected text after '>'", n, col + 1, n, len(line) + 1
                )
            elif stripped.startswith("<"):
                if pending or node.binary_chunks:
                    raise ParseError("block after binary payload", n, col)
                if owner is not None and self._side_channel(cur, owner):
                    continue
                node.children.append(self._object(cur, depth + 1))
                owner = None
            elif binary and _B64_RE.fullmatch(stripped):
                pending.append(stripped)
                cur.advance()
                if len(stripped) < B64_WIDTH or stripped.endswith("="):
                    node.binary_chunks.append("".join(pending))
                    pending = []
                owner = None
            else:
                if pending or node.binary_chunks:
                    raise ParseError(
                        "structured line after binary payload",
                        n,
                        col,
                        n,
                        len(line) + 1,
                    )
                struct = self._struct(line, n)
                node.children.append(struct)
                owner = (struct.token, struct.params)
                cur.advance()

        if pending:
            node.binary_chunks.append("".join(pending))
        return node

    def _text_body(self, cur, token, params, open_line, open_col) -> TextBlock:
        lines = []
        while True:
            if cur.at_end():
                raise ParseError(
                    f"<{token} is never closed",
                    open_line,
                    open_col,
                    len(cur.lines),
                    len(cur.lines[-1]) + 1,
                )
            _, line = cur.peek()
            cur.advance()
            text = line.lstrip()
            if text.rstrip() == ">":
                break
            lines.append(text[1:] if text.startswith("|") else text)

        header_size = len(params) if params else None
        if lines:
            params = params + ["\n".join(lines)]
        return TextBlock(token, params, header_size=header_size)

    def _side_channel(self, cur: _Lines, owner) -> bool:
        """Consume a ``<TOKEN / |raw / >`` block restoring a folded param.

        Only taken when the raw value folds to one of the owner's params;
        anything else is left for the ordinary block rule.
        """
        token, params = owner
        _, line = cur.peek()
        body, close = cur.ahead(1), cur.ahead(2)
        if line.strip() != "<" + token or body is None or close is None:
            return False
        body = body.lstrip()
        if close.strip() != ">" or not body.startswith("|"):
            return False
        raw = body[1:]
        if not has_all_delimiters(raw):
            return False
        folded = fold_backticks(raw)
        for i, p in enumerate(params):
            if isinstance(p, str) and p == folded:
                params[i] = raw
                cur.advance(3)
                return True
        return False

    # -- Lines and params ------------------------------------------------------------

    def _header(self, line, lineno):
        pos = _lead(line)
        if pos >= len(line) or line[pos] != "<":
            raise ParseError("expected '<' to open a block", lineno, pos + 1)
        m = _TOKEN_RE.match(line, pos + 1)
        if not m:
            raise ParseError("expected a token after '<'", lineno, pos + 2)
        token = m.group()
        return token, self._params(
            line, m.end(), lineno, strings_only=token in self.string_tokens
        )

    def _struct(self, line, lineno) -> Struct:
        pos = _lead(line)
        m = _TOKEN_RE.match(line, pos)
        if not m:
            raise ParseError(
                "expected a token", lineno, pos + 1, lineno, len(line) + 1
            )
        token = m.group()
        params = self._params(
            line, m.end(), lineno, strings_only=token in self.string_tokens
        )
        return Struct(token, params)

    def _params(self, line, pos, lineno, strings_only):
        params = []
        while pos < len(line):
            m = _WS_RE.match(line, pos)
            if not m:
                raise ParseError(
                    "expected whitespace before parameter", lineno, pos + 1
                )
            pos = m.end()
            if pos == len(line):
                break
            value, pos = self._param(line, pos, lineno, strings_only)
            params.append(value)
        return params

    def _param(self, line, pos, lineno, strings_only):
        ch = line[pos]
        if ch in DELIMITERS:
            end = line.find(ch, pos + 1)
            if end == -1:
                raise ParseError(
                    f"unterminated {ch}-quoted string",
                    lineno,
                    pos + 1,
                    lineno,
                    len(line) + 1,
                )
            after = end + 1
            if after < len(line) and line[after] not in " \t":
                raise ParseError(
                    "expected whitespace after closing quote", lineno, after + 1
                )
            return line[pos + 1 : end], after

        m = _BARE_RE.match(line, pos)
        text = m.group()
        if not strings_only:
            number = parse_number(text)
            if number is not None:
                return number, m.end()
        return text, m.end()


def parse(text: str, start_rule: str = "object"):
    """Parse ``text`` with a default-configured Parser."""
    return Parser().parse(text, start_rule)
