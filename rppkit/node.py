"""Generic tree model for RPP documents.

A document is a tree of ``Node`` blocks (``<TOKEN params ... >``) whose
children are either nested ``Node`` blocks or single-line ``Struct`` records.
Blocks that embed base64 payloads keep them in ``binary_chunks``, one entry
per logical chunk regardless of how many lines it spans when dumped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator

from .codec import (
    dump_struct,
    format_params,
    indent,
    side_channel_blocks,
    split_base64,
)
from .errors import EncodingError, LogicError, ValidationError


def _as_list(name, value):
    if isinstance(value, tuple):
        return list(value)
    if not isinstance(value, list):
        raise ValidationError(f"{name} must be a list, got {type(value).__name__}")
    return value


def _check_token(owner, token):
    if token is None or token == "":
        raise ValidationError(f"{owner} needs a non-empty .token string")
    if not isinstance(token, str):
        raise ValidationError(f"{owner} .token must be a string, got {token!r}")


@dataclass
class Struct:
    """A leaf record: one line, a token and its params."""

    token: str | None = None
    params: list[Any] = field(default_factory=list)

    def __post_init__(self):
        _check_token("Struct", self.token)
        self.params = _as_list("Struct.params", self.params)

    def dump(self, level: int = 0) -> str:
        return dump_struct(self.token, self.params, level)


@dataclass
class Node:
    """A bracketed block with params, children and optional base64 chunks."""

    token: str | None = None
    params: list[Any] = field(default_factory=list)
    children: list[Node | Struct] = field(default_factory=list)
    binary_chunks: list[Any] = field(default_factory=list)

    def __post_init__(self):
        _check_token(type(self).__name__, self.token)
        self.params = _as_list("params", self.params)
        self.children = _as_list("children", self.children)
        self.binary_chunks = _as_list("binary_chunks", self.binary_chunks)

    @classmethod
    def from_node(cls, node: Node, children: list) -> Node:
        """Copy of ``node`` as this class, with ``children`` in place of its own."""
        return cls(node.token, list(node.params), children, list(node.binary_chunks))

    # -- Structural operations -------------------------------------------------

    def find_child(self, token: str, occurrence: int = 0) -> Node | Struct | None:
        """Return the ``occurrence``-th child whose token is ``token``."""
        found = 0
        for child in self.children:
            if child.token == token:
                if found == occurrence:
                    return child
                found += 1
        return None

    def get_or_create_child(self, token: str, occurrence: int = 0) -> Node | Struct:
        """Like ``find_child``, but appends an empty struct when nothing matches."""
        child = self.find_child(token, occurrence)
        if child is None:
            child = self.insert_child(token, len(self.children))
        return child

    def insert_child(self, token: str, index: int) -> Struct:
        struct = Struct(token, [])
        self.children.insert(index, struct)
        return struct

    def remove_child(self, index: int) -> Node | Struct:
        return self.children.pop(index)

    def append(self, child: Node | Struct) -> Node:
        if child is None:
            raise LogicError("append() needs a child to add to .children")
        self.children.append(child)
        return self

    def walk(self) -> Iterator[Node]:
        """Yield this block and every nested block, depth first."""
        yield self
        for child in self.children:
            if isinstance(child, Node):
                yield from child.walk()

    # -- Serialization -----------------------------------------------------------

    def dump(self, level: int = 0) -> str:
        body = self.dump_children(level + 1) + self.dump_binary_chunks(level + 1)
        return self.dump_header(level) + "\n" + body + indent(level) + ">"

    def dump_header(self, level: int) -> str:
        return (
            indent(level)
            + "<"
            + self.token
            + format_params(self.params)
            + side_channel_blocks(self.token, self.params, level + 1)
        )

    def dump_children(self, level: int) -> str:
        out = ""
        for child in self.children:
            if isinstance(child, (Node, Struct)):
                out += child.dump(level) + "\n"
            else:
                raise EncodingError(
                    f"children must be Node or Struct, got {type(child).__name__}"
                )
        return out

    def dump_binary_chunks(self, level: int) -> str:
        out = ""
        for chunk in self.binary_chunks:
            text = chunk if isinstance(chunk, str) else str(chunk)
            for line in split_base64(text):
                out += indent(level) + line + "\n"
        return out


@dataclass
class TextBlock(Node):
    """Free-form text block such as ``<NOTES``.

    The text is the param after the header params; each of its lines is
    written with a leading ``|``. ``header_size`` is the number of params that
    stay on the header line (None: every param but a trailing string).
    """

    header_size: int | None = None

    @classmethod
    def from_node(cls, node: Node, children: list) -> TextBlock:
        block = super().from_node(node, children)
        block.header_size = getattr(node, "header_size", None)
        return block

    def _split(self):
        size = self.header_size
        if size is None:
            # Only a trailing string can be the text.
            size = len(self.params)
            if self.params and isinstance(self.params[-1], str):
                size -= 1
        return self.params[:size], self.params[size:]

    @property
    def text(self) -> str | None:
        _, rest = self._split()
        return rest[0] if rest else None

    @text.setter
    def text(self, value: str):
        if not isinstance(value, str):
            raise EncodingError(f"{self.token} text must be a string, got {value!r}")
        header, _ = self._split()
        self.params[:] = header + [value]

    def dump(self, level: int = 0) -> str:
        header, rest = self._split()
        out = indent(level) + "<" + self.token + format_params(header) + "\n"
        if len(rest) > 1:
            raise EncodingError(f"{self.token} carries more than one text param")
        if rest:
            if not isinstance(rest[0], str):
                raise EncodingError(
                    f"{self.token} text must be a string, got {rest[0]!r}"
                )
            for line in rest[0].split("\n"):
                out += indent(level + 1) + "|" + line + "\n"
        return out + indent(level) + ">"
