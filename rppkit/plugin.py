"""Plugin binary header: the first base64 chunk of a <VST block.

Wire layout (integers little-endian)::

    id (4) | magic (4) | n_in (4) | n_in x pin mask (8)
           | n_out (4) | n_out x pin mask (8) | state size (4) | footer (8)

A pin mask is a 64-bit field with bit i at byte i // 8, LSB first, marking
the channels the pin carries. The id is written little-endian but is known
by its big-endian reading: 'dfr2' is 0x64667232 and goes out as 32 72 66 64.
"""

import base64
import binascii
import struct

from .errors import EncodingError

MAGIC_VST2 = bytes.fromhex("ee5eedfe")
MAGIC_VST3 = bytes.fromhex("ef5eedfe")
MAGICS = {MAGIC_VST2: "VST2", MAGIC_VST3: "VST3"}

FOOTER_VST2 = bytes.fromhex("0100000000001000")
FOOTER_VST3 = bytes.fromhex("01000000ffff1000")

MASK_SIZE = 8
FOOTER_SIZE = 8
MAX_ID = 0xFFFFFFFF


# ---------------------------------------------------------------------------
# Pin masks
# ---------------------------------------------------------------------------


def encode_channel_mask(channels, size: int = MASK_SIZE) -> bytes:
    """Pack channel indices into a ``size``-byte LSB-first bitmask."""
    out = bytearray(size)
    for ch in channels:
        if not 0 <= ch < size * 8:
            raise EncodingError(f"channel {ch} does not fit a {size}-byte mask")
        out[ch // 8] |= 1 << (ch % 8)
    return bytes(out)


def decode_channel_mask(data: bytes) -> list[int]:
    """Inverse of ``encode_channel_mask``: the set channel indices, ascending."""
    return [i for i in range(len(data) * 8) if data[i // 8] >> (i % 8) & 1]


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------


class PluginHeader:
    """Decoded plugin header.

    ``plugin_id`` is the canonical big-endian integer; ``id_ascii`` and
    ``id_hex`` are views over it, so setting any of the three updates all.
    ``inputs``/``outputs`` hold one raw 8-byte mask per pin.
    """

    def __init__(
        self,
        plugin_id: int = 0,
        inputs=None,
        outputs=None,
        magic: bytes = MAGIC_VST2,
        state_size: int = 0,
        footer: bytes = FOOTER_VST2,
    ):
        self.plugin_id = plugin_id
        self.inputs = list(inputs or [])
        self.outputs = list(outputs or [])
        self.magic = magic
        self.state_size = state_size
        self.footer = footer

    @classmethod
    def new(
        cls,
        num_in: int = 2,
        num_out: int = 2,
        id_ascii: str = "AAAA",
        magic: bytes = MAGIC_VST2,
        state_size: int = 0,
    ) -> "PluginHeader":
        """Header with diagonal routing: pin i carries channel i."""
        header = cls(
            inputs=[encode_channel_mask([i]) for i in range(num_in)],
            outputs=[encode_channel_mask([i]) for i in range(num_out)],
            magic=magic,
            state_size=state_size,
            footer=FOOTER_VST3 if magic == MAGIC_VST3 else FOOTER_VST2,
        )
        header.id_ascii = id_ascii
        return header

    # -- Id views ---------------------------------------------------------------

    @property
    def plugin_id(self) -> int:
        return self._id

    @plugin_id.setter
    def plugin_id(self, value: int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodingError(f"plugin id must be an int, got {value!r}")
        if not 0 <= value <= MAX_ID:
            raise EncodingError(f"plugin id {value} is not an unsigned 32-bit int")
        self._id = value

    @property
    def id_bytes(self) -> bytes:
        return self._id.to_bytes(4, "big")

    @property
    def id_ascii(self) -> str:
        return self.id_bytes.decode("latin-1")

    @id_ascii.setter
    def id_ascii(self, value: str):
        try:
            raw = value.encode("latin-1")
        except (AttributeError, UnicodeEncodeError) as e:
            raise EncodingError(f"invalid plugin id {value!r}") from e
        if len(raw) != 4:
            raise EncodingError(f"plugin id must be 4 characters, got {value!r}")
        self._id = int.from_bytes(raw, "big")

    @property
    def id_hex(self) -> str:
        return self.id_bytes.hex()

    @id_hex.setter
    def id_hex(self, value: str):
        if not isinstance(value, str) or len(value) != 8:
            raise EncodingError(f"plugin id hex must be 8 characters, got {value!r}")
        try:
            self._id = int.from_bytes(bytes.fromhex(value), "big")
        except ValueError as e:
            raise EncodingError(f"invalid plugin id hex {value!r}") from e

    # -- Derived fields ----------------------------------------------------------

    @property
    def num_in(self) -> int:
        return len(self.inputs)

    @property
    def num_out(self) -> int:
        return len(self.outputs)

    @property
    def kind(self) -> str | None:
        """'VST2', 'VST3' or None for a magic this module does not know."""
        return MAGICS.get(self.magic)

    def input_channels(self) -> list[list[int]]:
        return [decode_channel_mask(m) for m in self.inputs]

    def output_channels(self) -> list[list[int]]:
        return [decode_channel_mask(m) for m in self.outputs]

    # -- Codec -----------------------------------------------------------------

    def to_bytes(self) -> bytes:
        for name, masks in (("input", self.inputs), ("output", self.outputs)):
            for m in masks:
                if len(m) != MASK_SIZE:
                    raise EncodingError(f"{name} pin mask must be {MASK_SIZE} bytes")
        if len(self.magic) != 4:
            raise EncodingError(f"magic must be 4 bytes, got {self.magic!r}")
        if len(self.footer) != FOOTER_SIZE:
            raise EncodingError(f"footer must be {FOOTER_SIZE} bytes")

        out = bytearray(struct.pack("<I", self._id))
        out += self.magic
        out += struct.pack("<I", len(self.inputs))
        out += b"".join(self.inputs)
        out += struct.pack("<I", len(self.outputs))
        out += b"".join(self.outputs)
        out += struct.pack("<I", self.state_size)
        out += self.footer
        return bytes(out)

    def encode(self) -> str:
        return base64.b64encode(self.to_bytes()).decode("ascii")

    @classmethod
    def from_bytes(cls, data: bytes) -> "PluginHeader":
        reader = _Reader(data)
        (plugin_id,) = struct.unpack("<I", reader.take(4, "plugin id"))
        magic = reader.take(4, "magic")
        if magic not in MAGICS:
            raise EncodingError(f"unknown plugin header magic {magic.hex()}")
        inputs = reader.masks("input")
        outputs = reader.masks("output")
        (state_size,) = struct.unpack("<I", reader.take(4, "state size"))
        footer = reader.take(FOOTER_SIZE, "footer")
        if reader.pos != len(data):
            raise EncodingError(
                f"{len(data) - reader.pos} unexpected bytes after plugin header"
            )
        return cls(plugin_id, inputs, outputs, magic, state_size, footer)

    @classmethod
    def decode(cls, b64: str) -> "PluginHeader":
        try:
            data = base64.b64decode(str(b64), validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncodingError(f"plugin header is not valid base64: {e}") from e
        return cls.from_bytes(data)

    def __str__(self) -> str:
        return self.encode()

    def __eq__(self, other):
        if not isinstance(other, PluginHeader):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __repr__(self):
        return (
            f"PluginHeader(id={self.id_ascii!r}, kind={self.kind}, "
            f"in={self.num_in}, out={self.num_out}, state_size={self.state_size})"
        )


class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def take(self, n: int, what: str) -> bytes:
        if self.pos + n > len(self.data):
            raise EncodingError(
                f"plugin header truncated reading {what} at byte {self.pos}"
            )
        chunk = self.data[self.pos : self.pos + n]
        self.pos += n
        return chunk

    def masks(self, what: str) -> list[bytes]:
        (count,) = struct.unpack("<I", self.take(4, f"{what} pin count"))
        return [self.take(MASK_SIZE, f"{what} pin mask") for _ in range(count)]
