"""Lifecycle hook plumbing for observability.

Callers may pass a hook `hook(event, fields)` to the indexer and embedding
engine. It is invoked at fixed lifecycle points in place of progress printing.
A failing hook is logged and never interrupts indexing or search.
"""

from collections.abc import Callable
from typing import Any

from loguru import logger

LifecycleHook = Callable[[str, dict[str, Any]], None]

INITIALIZE_START = "initialize.start"
INITIALIZE_END = "initialize.end"
INITIALIZE_FAILED = "initialize.failed"
CHUNK_EMBED_FAILED = "chunk.embed_failed"
CHUNK_INSERT_FAILED = "chunk.insert_failed"
PAGE_INDEXED = "page.indexed"
PAGE_FAILED = "page.failed"
PAGE_REMOVED = "page.removed"
INDEX_CLEARED = "index.cleared"


def emit_event(hook: LifecycleHook | None, event: str, **fields: Any) -> None:
    """Invoke the hook for one lifecycle event, if a hook is set."""
    if hook is None:
        return
    try:
        hook(event, fields)
    except Exception:
        logger.exception(f"Lifecycle hook raised while handling {event!r}")
