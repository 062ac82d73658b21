"""MIDI event encoding for <SOURCE MIDI blocks.

Notes are given in whole notes (``s`` start, ``l`` length) and become
``E offset status note velocity`` structs, where offset is the tick delta
from the previous event and status/note/velocity are hex strings.
"""

from pydantic import BaseModel, Field, field_validator

from .codec import format_number, is_number
from .node import Node, Struct

TICKS_QN = 960
# Events whose last three params are always two-digit hex strings.
MIDI_EVENT_TOKENS = frozenset({"E", "e", "X", "x", "Em", "em", "Xm", "xm"})

MAX_OFFSET = 2**32 - 1


class MidiNote(BaseModel):
    n: int = Field(ge=0, le=127)  # note number
    s: float = Field(ge=0)  # start, whole notes
    l: float = Field(ge=0)  # length, whole notes
    v: int = Field(default=64, ge=1, le=127)  # velocity
    c: int = Field(default=0, ge=0, le=15)  # channel

    @field_validator("v", mode="before")
    @classmethod
    def _default_velocity(cls, v):
        return v or 64

    @field_validator("c", mode="before")
    @classmethod
    def _default_channel(cls, c):
        return c or 0


def _event(offset: int, status: str, note: int, velocity: int) -> Struct:
    # Offsets past 32 bits need the extended event token.
    token = "X" if offset > MAX_OFFSET else "E"
    return Struct(token, [offset, status, f"{note:02x}", f"{velocity:02x}"])


def midi_events(notes, ticks_qn: int = TICKS_QN) -> list[Struct]:
    """``HASDATA`` header plus one note-on and one note-off event per note.

    Events are ordered by tick. On a shared tick, note-offs of notes that
    started earlier come first; otherwise the given order is kept.
    """
    ticks_whole = ticks_qn * 4
    timeline = [(0, 0, None, None)]
    for note in notes:
        if not isinstance(note, MidiNote):
            note = MidiNote.model_validate(note)
        start = round(note.s * ticks_whole)
        end = start + round(note.l * ticks_whole)
        timeline.append((start, 1, "9", note))
        # A zero-length note keeps its note-on ahead of its note-off.
        timeline.append((end, 0 if end > start else 1, "8", note))
    timeline.sort(key=lambda e: (e[0], e[1]))

    events = [Struct("HASDATA", [1, ticks_qn, "QN"])]
    for (prev, *_), (tick, _, status, note) in zip(timeline, timeline[1:]):
        velocity = 0 if status == "8" else note.v
        events.append(_event(tick - prev, f"{status}{note.c:x}", note.n, velocity))
    return events


def last_event_tick(events) -> int:
    """Absolute tick of the last E/X event in ``events``."""
    tick = 0
    for ev in events:
        if ev.token in MIDI_EVENT_TOKENS and ev.params and is_number(ev.params[0]):
            tick += ev.params[0]
    return tick


def all_notes_off(end_tick: int, last_tick: int) -> Struct:
    """Controller 123 on channel 0, placed ``end_tick - last_tick`` after the last event."""
    return Struct("E", [end_tick - last_tick, "b0", "7b", "00"])


def clean_midi_events(node: Node) -> Node:
    """Turn numeric status/data params of parsed MIDI events back into hex text.

    The parser reads ``E 0 90 3c 60`` as ``[0, 90, '3c', 60]``; the last three
    params are hex, so they become ``['90', '3c', '60']``.
    """
    for child in node.children:
        if not isinstance(child, Struct) or child.token not in MIDI_EVENT_TOKENS:
            continue
        for j in range(1, min(4, len(child.params))):
            value = child.params[j]
            text = format_number(value) if is_number(value) else str(value)
            child.params[j] = text.zfill(2)
    return node
