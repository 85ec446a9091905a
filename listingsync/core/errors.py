from __future__ import annotations

from typing import Any


class SyncError(Exception):
    """Base class for listing-sync failures."""

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}


class CredentialError(SyncError):
    """Token exchange failed or returned no token. Fatal to a run."""


class FetchError(SyncError):
    """A bulk fetch (listings or collection items) failed. Fatal to a run."""


class StoreError(SyncError):
    """A single create/update/delete against the collection store failed."""


class PublishError(SyncError):
    """Publishing items or the site failed. Logged, never fatal."""
