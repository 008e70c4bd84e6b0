"""Exception hierarchy shared by the remote client, the sync pipeline and the routes."""

from __future__ import annotations

from typing import Optional


class CatalogError(Exception):
    """Base class for every error raised by the catalog service."""


class ConfigurationError(CatalogError):
    """Missing or rejected credentials/configuration; never retried."""


class RemoteAPIError(CatalogError):
    """A Spotify Web API request failed."""

    def __init__(self, message: str, *, status: Optional[int] = None, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.url = url


class RemoteTimeout(RemoteAPIError):
    """The remote endpoint did not answer within the allotted attempts."""


class RateLimitExceeded(RemoteAPIError):
    """HTTP 429 persisted after every allowed attempt."""


class AuthenticationFailed(RemoteAPIError):
    """HTTP 401 persisted after refreshing the bearer token."""


class AccessDenied(RemoteAPIError):
    """HTTP 403; the credentials lack permission for the endpoint."""


class ResourceNotFound(RemoteAPIError):
    """HTTP 404; the requested remote resource does not exist."""


class DatastoreError(CatalogError):
    """A write against the relational store failed and was rolled back."""


__all__ = [
    "CatalogError",
    "ConfigurationError",
    "RemoteAPIError",
    "RemoteTimeout",
    "RateLimitExceeded",
    "AuthenticationFailed",
    "AccessDenied",
    "ResourceNotFound",
    "DatastoreError",
]
