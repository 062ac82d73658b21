"""rppkit: parse, edit and write REAPER .RPP project files."""

from .errors import (
    EncodingError,
    LogicError,
    ParseError,
    RppError,
    ValidationError,
    describe_parse_error,
)
from .node import Node, Struct, TextBlock
from .objects import (
    AutomationEnvelope,
    FXChain,
    Item,
    MidiSource,
    Project,
    Source,
    TempoEnvelope,
    Track,
    Vst,
)
from .parser import Parser, parse
from .plugin import PluginHeader
from .serializer import dump
from .specialize import specialize

__version__ = "0.1.0"
