"""
DiagnosticFeed: turns reducer diagnostics into host-visible notifications.

Fans each notification out to registered listeners (sockets, loggers, test
probes) and keeps a bounded history the REST layer can poll.  The payload
mirrors a toast: title, message, type and display duration.
"""
from __future__ import annotations

import logging
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterable, List

from nodeflow.core.GraphReducer import Diagnostic
from nodeflow.core.Types import DiagnosticKind

logger = logging.getLogger(__name__)

TOAST_DURATION_MS = 5000

_TITLES = {
    DiagnosticKind.NOT_FOUND: "Nothing to change",
    DiagnosticKind.INCOMPATIBLE_PORT_TYPES: "Unable to connect",
    DiagnosticKind.CYCLE_REJECTED: "Unable to connect",
    DiagnosticKind.CYCLE_WARNING: "Circular Connection Detected",
    DiagnosticKind.CONNECTION_PRUNED: "Connection removed",
}


def to_notification(diagnostic: Diagnostic) -> Dict[str, Any]:
    payload = diagnostic.to_dict()
    payload.update({
        "title": _TITLES[diagnostic.kind],
        "type": "warning" if diagnostic.kind.is_warning or diagnostic.kind is DiagnosticKind.CYCLE_REJECTED
        else "info",
        "duration": TOAST_DURATION_MS,
    })
    return payload


class DiagnosticFeed:
    def __init__(self, history: int = 100) -> None:
        self._listeners: List[Callable[[Dict[str, Any]], None]] = []
        self._recent: Deque[Dict[str, Any]] = deque(maxlen=history)

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def on_notification(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        """Register a callback that receives every published notification."""
        self._listeners.append(callback)

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def publish(self, diagnostics: Iterable[Diagnostic]) -> List[Dict[str, Any]]:
        """Stamp each diagnostic with a millisecond timestamp and broadcast it."""
        published = []
        for diagnostic in diagnostics:
            payload = to_notification(diagnostic)
            payload["ts"] = _now_ms()
            self._recent.append(payload)
            published.append(payload)
            for cb in self._listeners:
                try:
                    cb(payload)
                except Exception:
                    # never let a listener interrupt dispatch
                    logger.exception("Notification listener failed")
        return published

    def recent(self) -> List[Dict[str, Any]]:
        return list(self._recent)

    def clear(self) -> None:
        self._recent.clear()


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

def _now_ms() -> int:
    return int(time.time() * 1000)
