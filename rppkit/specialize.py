"""Turn a generic parsed tree into typed variants.

The variant for a block is looked up by ``(token, first param)`` and then by
``(token, None)``; anything unlisted stays a plain ``Node``. ``specialize``
builds a new tree and leaves its input untouched.
"""

from .errors import ValidationError
from .node import Node, Struct, TextBlock
from .objects import (
    PLUGIN_TOKENS,
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

VARIANTS = {
    ("REAPER_PROJECT", None): Project,
    ("TRACK", None): Track,
    ("ITEM", None): Item,
    ("SOURCE", None): Source,
    ("SOURCE", "MIDI"): MidiSource,
    ("FXCHAIN", None): FXChain,
    ("NOTES", None): TextBlock,
    ("VOLENV2", None): AutomationEnvelope,
    ("PANENV2", None): AutomationEnvelope,
    ("WIDTHENV2", None): AutomationEnvelope,
    ("PARMENV", None): AutomationEnvelope,
    ("TEMPOENVEX", None): TempoEnvelope,
}
VARIANTS.update({(token, None): Vst for token in PLUGIN_TOKENS})


def variant_for(token: str, params) -> type:
    first = params[0] if params and isinstance(params[0], str) else None
    return VARIANTS.get((token, first)) or VARIANTS.get((token, None), Node)


def specialize(tree):
    """Return a copy of ``tree`` with every block re-created as its variant."""
    if isinstance(tree, Struct):
        return Struct(tree.token, list(tree.params))
    if not isinstance(tree, Node):
        raise ValidationError(f"cannot specialize {type(tree).__name__}")
    children = [specialize(child) for child in tree.children]
    return variant_for(tree.token, tree.params).from_node(tree, children)
