"""Dump entry point mirroring the parser's start rules."""

from .codec import format_number, format_params, format_string
from .errors import EncodingError
from .midi import midi_events


def dump(value, start_rule: str = "object"):
    """Serialize ``value`` the way the matching parser rule would read it.

    ``midi`` returns the list of event structs for a list of notes rather
    than text; every other rule returns a string.
    """
    if start_rule in ("int", "decimal"):
        return format_number(value)
    if start_rule == "params":
        return format_params(value)
    if start_rule == "string":
        return format_string(value)
    if start_rule == "midi":
        return midi_events(value)
    if not hasattr(value, "dump"):
        raise EncodingError(f"cannot dump {type(value).__name__} as an object")
    return value.dump()
