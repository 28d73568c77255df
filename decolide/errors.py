"""
Error taxonomy shared by adapters and services.

Adapters raise these; services turn them into result values
(success flag + message) before they reach a route or the CLI.
"""
from __future__ import annotations

from typing import Optional


class DecolideError(Exception):
    """Base class for all service errors."""

    kind = "error"


class ConfigurationError(DecolideError):
    """Required credentials or store identity are missing."""

    kind = "configuration"


class ValidationError(DecolideError):
    """A request was rejected locally; nothing was written."""

    kind = "validation"


class UpstreamError(DecolideError):
    """Shopify, Spaces or another collaborator failed."""

    kind = "upstream"

    def __init__(self, message: str, *, status: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.detail = detail

    def __str__(self) -> str:
        msg = super().__str__()
        if self.status is not None:
            msg = f"{msg} (status {self.status})"
        if self.detail:
            msg = f"{msg}: {self.detail}"
        return msg


class NotFoundError(UpstreamError):
    """An order could not be resolved to its Shopify id."""

    kind = "not_found"
