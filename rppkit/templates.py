"""New-project template.

The template text is read once per process, from ``RPPKIT_TEMPLATE`` when set
and from the bundled ``data/empty.RPP`` otherwise. Tests swap it with
``set_template``.
"""

import functools
import logging
from importlib import resources
from pathlib import Path

from .config import get_settings

logger = logging.getLogger(__name__)

BUNDLED_TEMPLATE = "empty.RPP"

_override: str | None = None


def bundled_template_text() -> str:
    return (resources.files(__package__) / "data" / BUNDLED_TEMPLATE).read_text(
        encoding="utf-8"
    )


@functools.lru_cache(maxsize=1)
def template_text() -> str:
    """The new-project template, loaded on first use."""
    if _override is not None:
        return _override
    path = get_settings().template_path
    if path:
        logger.debug("loading project template from %s", path)
        return Path(path).read_text(encoding="utf-8")
    logger.debug("loading bundled project template")
    return bundled_template_text()


def set_template(text: str | None):
    """Replace the process-wide template; ``None`` restores the default."""
    global _override
    _override = text
    template_text.cache_clear()
