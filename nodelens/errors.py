"""Exception types raised across NodeLens components."""

from __future__ import annotations


class NodeLensError(Exception):
    """Base class for NodeLens errors."""


class InvalidIdentifierError(NodeLensError, ValueError):
    """Raised when a node or workload identifier cannot be embedded in a query."""

    def __init__(self, identifier: str, reason: str) -> None:
        super().__init__(f"Invalid identifier {identifier!r}: {reason}")
        self.identifier = identifier


class AnalysisEngineError(NodeLensError):
    """Raised when the analysis engine cannot produce a diagnosis.

    Covers timeouts, connection failures, non-2xx responses and malformed
    response bodies alike; callers treat them identically.
    """


class NotificationError(NodeLensError):
    """Raised when a notification could not be handed to the bus."""

    def __init__(self, backend: str, detail: str) -> None:
        super().__init__(f"{backend} publish failed: {detail}")
        self.backend = backend
        self.detail = detail
