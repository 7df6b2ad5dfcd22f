"""Caller-supplied lifecycle callbacks.

A Callbacks set holds at most one handler per event. Missing handlers are
treated as no-ops by ``fire``, so dispatch code never has to check for
them. Handler exceptions are logged and do not interrupt dispatch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]

# Event names in the order a signal fans out: specific, then derived.
EVENTS: tuple[str, ...] = ("open", "message", "error", "close", "all_events", "result")

# Events raised by the transport itself.
SIGNALS: tuple[str, ...] = ("open", "message", "error", "close")


@dataclass(frozen=True)
class Callbacks:
    """Optional handler for each lifecycle event.

    Attributes:
        on_open: Called with the manager once per successful open.
        on_message: Called with each inbound message.
        on_error: Called with each transport error.
        on_close: Called once on terminal closure, with the close event
            or None when retries were exhausted.
        on_all_events: Called after every other callback, with the same
            payload for message and error and no payload otherwise.
        on_result: Called after every message, error and terminal closure.
    """

    on_open: Optional[Handler] = None
    on_message: Optional[Handler] = None
    on_error: Optional[Handler] = None
    on_close: Optional[Handler] = None
    on_all_events: Optional[Handler] = None
    on_result: Optional[Handler] = None

    def supplied(self) -> set[str]:
        """Return the event names that have a handler."""
        return {
            f.name[len("on_"):] for f in fields(self) if getattr(self, f.name) is not None
        }

    def merged(self, other: Callbacks) -> Callbacks:
        """Return a copy with every handler supplied by ``other`` replaced."""
        updates = {f"on_{event}": getattr(other, f"on_{event}") for event in other.supplied()}
        return replace(self, **updates)

    def fire(self, event: str, *payload: Any) -> None:
        """Invoke the handler for ``event``, or do nothing if it is absent.

        Args:
            event: One of EVENTS.
            *payload: Positional arguments passed to the handler.
        """
        handler = getattr(self, f"on_{event}") or _noop
        try:
            handler(*payload)
        except Exception:
            logger.exception("Error in %s callback", event)


def _noop(*payload: Any) -> None:
    pass


def resolve_callbacks(callbacks: Callbacks | None, handlers: dict[str, Handler]) -> Callbacks:
    """Combine an optional Callbacks with keyword handlers.

    Keyword handlers use the field names (``on_message=...``) and take
    precedence over the same field in ``callbacks``.

    Raises:
        TypeError: If a keyword is not a known handler name.
    """
    base = callbacks if callbacks is not None else Callbacks()
    return replace(base, **handlers) if handlers else base
