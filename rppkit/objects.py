"""Typed views over the generic tree.

Each class here is a ``Node`` with helpers for one kind of block. They are
created by ``rppkit.specialize`` from parsed trees or built directly with
their ``new``/factory classmethods. Serialization is inherited from ``Node``
except for ``Vst``, which re-emits the sibling lines folded into it.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from .codec import base64_byte_length, dump_struct, is_number
from .errors import EncodingError, LogicError, ValidationError
from .midi import (
    MIDI_EVENT_TOKENS,
    TICKS_QN,
    all_notes_off,
    clean_midi_events,
    last_event_tick,
    midi_events,
)
from .node import Node, Struct
from .plugin import PluginHeader

logger = logging.getLogger(__name__)


def _require(value, kind, what):
    if not isinstance(value, kind):
        raise ValidationError(f"{what} must be a {kind.__name__}, got {value!r}")


def _require_number(value, what):
    if not is_number(value):
        raise ValidationError(f"{what} must be a number, got {value!r}")


# ---------------------------------------------------------------------------
# Project / track / item
# ---------------------------------------------------------------------------


@dataclass
class Project(Node):
    token: str | None = "REAPER_PROJECT"

    @classmethod
    def empty(cls, template: str | None = None) -> Project:
        """A new project parsed from ``template`` or the process-wide template."""
        from .parser import parse
        from .specialize import specialize
        from .templates import template_text

        text = template_text() if template is None else template
        project = specialize(parse(text))
        if not isinstance(project, Project):
            raise LogicError(f"template opens <{project.token}, not <REAPER_PROJECT")
        return project

    @property
    def tracks(self) -> list[Track]:
        return [c for c in self.children if isinstance(c, Track)]

    @property
    def tempo_envelope(self) -> TempoEnvelope | None:
        env = self.find_child("TEMPOENVEX")
        return env if isinstance(env, TempoEnvelope) else None

    def add_track(self, track: Track) -> Project:
        _require(track, Track, "track")
        return self.append(track)


@dataclass
class Track(Node):
    token: str | None = "TRACK"

    @classmethod
    def new(cls, name: str | None = None) -> Track:
        track = cls()
        if name is not None:
            track.name = name
        return track

    @property
    def name(self) -> str | None:
        struct = self.find_child("NAME")
        return struct.params[0] if struct is not None and struct.params else None

    @name.setter
    def name(self, value: str):
        _require(value, str, "track name")
        self.get_or_create_child("NAME").params[:] = [value]

    @property
    def items(self) -> list[Item]:
        return [c for c in self.children if isinstance(c, Item)]

    @property
    def fxchain(self) -> FXChain | None:
        chain = self.find_child("FXCHAIN")
        return chain if isinstance(chain, FXChain) else None

    def add_item(self, item: Item) -> Track:
        _require(item, Item, "item")
        return self.append(item)


@dataclass
class Item(Node):
    token: str | None = "ITEM"

    @classmethod
    def audio(
        cls,
        file: str | None = None,
        position=0,
        length=2,
        name: str = "untitled WAVE item",
    ) -> Item:
        source = Source.new("WAVE")
        if file is not None:
            source.set_file(file)
        return cls._with_source(source, position, length, name)

    @classmethod
    def midi(
        cls,
        notes=(),
        position=0,
        length=2,
        name: str = "untitled MIDI item",
        end=None,
    ) -> Item:
        source = MidiSource.new()
        source.set_midi_notes(notes, end=end)
        return cls._with_source(source, position, length, name)

    @classmethod
    def _with_source(cls, source, position, length, name) -> Item:
        _require_number(position, "position")
        _require_number(length, "length")
        return cls(
            children=[
                Struct("POSITION", [position]),
                Struct("LENGTH", [length]),
                Struct("NAME", [name]),
                source,
            ]
        )

    @property
    def source(self) -> Source | None:
        src = self.find_child("SOURCE")
        return src if isinstance(src, Source) else None


# ---------------------------------------------------------------------------
# Media sources
# ---------------------------------------------------------------------------

MODE_SECTION = 1
MODE_REVERSED = 2


@dataclass
class Source(Node):
    """``<SOURCE kind``; kind is WAVE, MP3, MIDI, SECTION, ..."""

    token: str | None = "SOURCE"

    @classmethod
    def new(cls, kind: str = "WAVE") -> Source:
        return cls(params=[kind])

    @property
    def kind(self) -> str | None:
        return self.params[0] if self.params else None

    def is_midi_source(self) -> bool:
        return self.kind == "MIDI"

    def is_wave_source(self) -> bool:
        return self.kind == "WAVE"

    def is_mp3_source(self) -> bool:
        return self.kind == "MP3"

    def is_section_source(self) -> bool:
        return self.kind == "SECTION"

    # -- Files -----------------------------------------------------------------

    @property
    def file(self) -> str | None:
        if self.is_section_source():
            return self.inner_source.file
        struct = self.find_child("FILE")
        return struct.params[0] if struct is not None and struct.params else None

    def set_file(self, path: str) -> Source:
        _require(path, str, "file path")
        if self.is_section_source():
            self.inner_source.set_file(path)
        elif self.is_midi_source():
            logger.warning("MIDI sources carry events, not files; %s ignored", path)
        else:
            struct = self.find_child("FILE") or self.insert_child("FILE", 0)
            struct.params[:] = [path]
        return self

    # -- Sections --------------------------------------------------------------

    @property
    def inner_source(self) -> Source:
        """The wrapped source of a SECTION source."""
        if not self.is_section_source():
            raise EncodingError(f"<SOURCE {self.kind}> is not a section source")
        inner = self.find_child("SOURCE")
        if inner is None:
            raise EncodingError("section source has no inner <SOURCE")
        return inner

    def make_section_source(self, start=0, length=None, overlap=0) -> Source:
        """Wrap the current source in a SECTION source, in place."""
        if self.is_section_source():
            logger.warning("source is already a section source; left unchanged")
            return self
        inner = type(self)(
            self.token,
            list(self.params),
            list(self.children),
            list(self.binary_chunks),
        )
        mode = 0
        children = []
        if length is not None:
            _require_number(length, "section length")
            children.append(Struct("LENGTH", [length]))
            mode |= MODE_SECTION
        children += [
            Struct("MODE", [mode]),
            Struct("STARTPOS", [start]),
            Struct("OVERLAP", [overlap]),
            inner,
        ]
        self.params = ["SECTION"]
        self.children = children
        self.binary_chunks = []
        return self

    def reverse(self) -> Source:
        """Toggle reversed playback; non-section sources become sections first."""
        if self.is_midi_source():
            logger.warning("MIDI sources cannot be reversed; left unchanged")
            return self
        if not self.is_section_source():
            self.make_section_source()

        inner = [i for i, c in enumerate(self.children) if c.token == "SOURCE"]
        if len(inner) != 1:
            logger.warning(
                "section source wraps %d sources, expected 1; not reversed", len(inner)
            )
            return self

        mode = self.find_child("MODE") or self.insert_child("MODE", inner[0])
        flags = mode.params[0] if mode.params and is_number(mode.params[0]) else 0
        mode.params[:] = [int(flags) ^ MODE_REVERSED]
        return self

    def is_reversed(self) -> bool:
        mode = self.find_child("MODE") if self.is_section_source() else None
        if mode is None or not mode.params or not is_number(mode.params[0]):
            return False
        return bool(int(mode.params[0]) & MODE_REVERSED)

    # -- MIDI --------------------------------------------------------------------

    def make_midi_source(self) -> Source:
        self.params = ["MIDI"]
        self.children = []
        self.binary_chunks = []
        return self

    def set_midi_notes(self, notes, end=None, ticks_qn: int = TICKS_QN) -> Source:
        """Replace the MIDI events with ``notes``.

        When ``end`` (in whole notes) is given, an all-notes-off event is
        appended at that position.
        """
        if not self.is_midi_source():
            raise LogicError(f"set_midi_notes() needs a MIDI source, not {self.kind}")

        # New events go where the old ones started, or at the end.
        kept, index = [], None
        for child in self.children:
            if child.token == "HASDATA" or child.token in MIDI_EVENT_TOKENS:
                if index is None:
                    index = len(kept)
            else:
                kept.append(child)
        if index is None:
            index = len(kept)

        events = midi_events(notes, ticks_qn)
        if end is not None:
            _require_number(end, "end")
            end_tick = round(end * ticks_qn * 4)
            last_tick = last_event_tick(events)
            if end_tick < last_tick:
                logger.warning(
                    "end %s lies before the last note event; all-notes-off skipped",
                    end,
                )
            else:
                events.append(all_notes_off(end_tick, last_tick))

        self.children = kept[:index] + events + kept[index:]
        return self


@dataclass
class MidiSource(Source):
    """``<SOURCE MIDI`` with its event params kept as hex strings."""

    @classmethod
    def new(cls, kind: str = "MIDI") -> MidiSource:
        return cls(params=[kind])

    @classmethod
    def from_node(cls, node, children):
        return clean_midi_events(super().from_node(node, children))

    @property
    def events(self) -> list[Struct]:
        return [
            c
            for c in self.children
            if isinstance(c, Struct) and c.token in MIDI_EVENT_TOKENS
        ]


# ---------------------------------------------------------------------------
# Plugins
# ---------------------------------------------------------------------------

PLUGIN_TOKENS = ("VST", "AU", "DX", "LV2", "CLAP", "JS")
# Sibling lines that belong to the plugin before them, in written order.
ATTRS_BEFORE = ("BYPASS",)
ATTRS_AFTER = ("PRESETNAME", "FLOATPOS", "FXID")
ATTRS_LAST = ("WAK",)
EXTERNAL_ATTRIBUTES = ATTRS_BEFORE + ATTRS_AFTER + ATTRS_LAST

DEFAULT_EXTRA_CHUNK = "AAAQAAAA"


@dataclass
class Vst(Node):
    """A plugin block plus the FXCHAIN lines that describe it.

    ``external_attributes`` maps BYPASS/PRESETNAME/FLOATPOS/FXID/WAK to their
    params; ``owned_blocks`` are blocks such as ``<PARMENV`` written between
    the plugin and its WAK line. ``dump`` puts all of them back in place.
    """

    token: str | None = "VST"
    external_attributes: dict[str, list[Any]] = field(default_factory=dict)
    owned_blocks: list[Node] = field(default_factory=list)

    @classmethod
    def new(
        cls,
        name: str,
        file: str,
        header: PluginHeader,
        state: str = "",
        extra: str = DEFAULT_EXTRA_CHUNK,
    ) -> Vst:
        vst = cls(
            params=[name, file, 0, "", header.plugin_id, ""],
            binary_chunks=[header.encode(), state, extra],
            external_attributes={"BYPASS": [0, 0, 0], "WAK": [0, 0]},
        )
        vst.sync_state_size()
        return vst

    @classmethod
    def from_node(cls, node, children):
        vst = super().from_node(node, children)
        if isinstance(node, Vst):
            vst.external_attributes = copy.deepcopy(node.external_attributes)
            vst.owned_blocks = copy.deepcopy(node.owned_blocks)
        return vst

    @property
    def header(self) -> PluginHeader:
        if not self.binary_chunks:
            raise EncodingError(f"<{self.token}> has no binary header chunk")
        chunk = self.binary_chunks[0]
        if isinstance(chunk, PluginHeader):
            return chunk
        return PluginHeader.decode(chunk)

    @header.setter
    def header(self, value: PluginHeader):
        _require(value, PluginHeader, "header")
        if self.binary_chunks:
            self.binary_chunks[0] = value.encode()
        else:
            self.binary_chunks.append(value.encode())

    def sync_state_size(self) -> PluginHeader:
        """Rewrite the header's state size from the length of the state chunk.

        The chunks are header, state, extra; an empty state writes no lines,
        so a re-parsed stateless plugin has only header and extra.
        """
        header = self.header
        state = str(self.binary_chunks[1]) if len(self.binary_chunks) > 2 else ""
        header.state_size = base64_byte_length(state)
        self.header = header
        return header

    def walk(self):
        yield from super().walk()
        for block in self.owned_blocks:
            yield from block.walk()

    def _dump_attribute(self, token, level):
        return dump_struct(token, self.external_attributes[token], level)

    def dump(self, level: int = 0) -> str:
        unknown = set(self.external_attributes) - set(EXTERNAL_ATTRIBUTES)
        if unknown:
            raise EncodingError(f"unknown plugin attributes: {sorted(unknown)}")

        lines = [
            self._dump_attribute(t, level)
            for t in ATTRS_BEFORE
            if t in self.external_attributes
        ]
        lines.append(super().dump(level))
        lines += [
            self._dump_attribute(t, level)
            for t in ATTRS_AFTER
            if t in self.external_attributes
        ]
        lines += [block.dump(level) for block in self.owned_blocks]
        lines += [
            self._dump_attribute(t, level)
            for t in ATTRS_LAST
            if t in self.external_attributes
        ]
        return "\n".join(lines)


def _take_struct(children, i, token):
    child = children[i] if i < len(children) else None
    if isinstance(child, Struct) and child.token == token:
        return child
    return None


@dataclass
class FXChain(Node):
    token: str | None = "FXCHAIN"

    @classmethod
    def new(cls) -> FXChain:
        return cls(
            children=[
                Struct("SHOW", [0]),
                Struct("LASTSEL", [0]),
                Struct("DOCKED", [0]),
            ]
        )

    @classmethod
    def from_node(cls, node, children):
        return super().from_node(node, cls.fold(children))

    @staticmethod
    def fold(children) -> list:
        """Move each plugin's sibling lines into its ``external_attributes``.

        Only lines in the order the FX chain writes them are folded; anything
        else stays a sibling, so the dumped text is unchanged either way.
        """
        out = []
        i = 0
        while i < len(children):
            child = children[i]
            i += 1
            if not isinstance(child, Vst):
                out.append(child)
                continue

            attrs = child.external_attributes
            prev = out[-1] if out else None
            if isinstance(prev, Struct) and prev.token in ATTRS_BEFORE:
                if prev.token not in attrs:
                    attrs[prev.token] = prev.params
                    out.pop()

            for token in ATTRS_AFTER:
                struct = _take_struct(children, i, token)
                if struct is not None and token not in attrs:
                    attrs[token] = struct.params
                    i += 1

            while (
                i < len(children)
                and isinstance(children[i], Node)
                and not isinstance(children[i], Vst)
            ):
                child.owned_blocks.append(children[i])
                i += 1

            for token in ATTRS_LAST:
                struct = _take_struct(children, i, token)
                if struct is not None and token not in attrs:
                    attrs[token] = struct.params
                    i += 1

            out.append(child)
        return out

    @property
    def plugins(self) -> list[Vst]:
        return [c for c in self.children if isinstance(c, Vst)]

    def add_vst(self, vst: Vst) -> FXChain:
        _require(vst, Vst, "vst")
        return self.append(vst)


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------

SHAPE_BEZIER = 5


@dataclass
class AutomationEnvelope(Node):
    """Envelope block (``VOLENV2``, ``PANENV2``, ``WIDTHENV2``, ``PARMENV``)."""

    token: str | None = "VOLENV2"

    @property
    def points(self) -> list[Struct]:
        return [c for c in self.children if isinstance(c, Struct) and c.token == "PT"]

    def add_point(self, time, value, shape=0) -> AutomationEnvelope:
        _require_number(time, "time")
        _require_number(value, "value")
        _require_number(shape, "shape")
        return self.append(Struct("PT", [time, value, shape]))

    def add_bezier_point(self, time, value, tension=0) -> AutomationEnvelope:
        _require_number(time, "time")
        _require_number(value, "value")
        _require_number(tension, "tension")
        # PT time value shape tempo-flag selected unused tension
        return self.append(Struct("PT", [time, value, SHAPE_BEZIER, 0, 0, 0, tension]))


@dataclass
class TempoEnvelope(AutomationEnvelope):
    token: str | None = "TEMPOENVEX"

    def add_time_signature(
        self, numerator: int, denominator: int, time, bpm=120, shape=1
    ) -> TempoEnvelope:
        """Add a tempo point that also changes the time signature.

        REAPER packs the signature as ``denominator << 16 | numerator``.
        """
        for what, value in (("numerator", numerator), ("denominator", denominator)):
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValidationError(f"{what} must be an int, got {value!r}")
            if not 1 <= value <= 0xFFFF:
                raise ValidationError(f"{what} {value} is out of range")
        _require_number(time, "time")
        _require_number(bpm, "bpm")
        packed = denominator << 16 | numerator
        return self.append(Struct("PT", [time, bpm, shape, packed, 0, 3]))
