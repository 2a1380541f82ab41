"""Shared pieces of the notification channels."""

from __future__ import annotations


class ChannelError(Exception):
    """Raised when a notification channel rejects or fails a post."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
