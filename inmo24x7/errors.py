"""Exception types shared across the conversation engine."""

from __future__ import annotations

from typing import Optional


class Inmo24x7Error(Exception):
    pass


class ModelServiceError(Inmo24x7Error):
    """The language-model service failed to produce a completion."""


class RateLimitedError(ModelServiceError):
    """Quota exhausted or rate limited (HTTP 429); callers degrade instead of failing."""


class ToolExecutionError(Inmo24x7Error):
    def __init__(self, tool_name: str, message: str, call_id: Optional[str] = None) -> None:
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name
        self.call_id = call_id
        self.message = message


class PersistenceError(Inmo24x7Error):
    """The lead datastore rejected a read or write."""
