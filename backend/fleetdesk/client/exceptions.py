"""Exceptions raised inside the dashboard client.

None of these reach the dashboard consumer: the connection manager
catches them and drops to the next freshness tier.
"""


class ClientError(Exception):
    """Base class for dashboard client errors."""


class HandshakeError(ClientError):
    """A single candidate endpoint refused or failed the handshake."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Handshake with {url} failed: {reason}")
        self.url = url
        self.reason = reason


class CacheError(ClientError):
    """The local cache store could not be read or written."""
