"""
Transport error taxonomy.

None of these ever reach a consumer as a raised exception except
TransportError from SessionHandle.send(); every other failure resolves
into ConnectionStatus.DISCONNECTED plus an automatic retry.
"""

from __future__ import annotations


class TransportError(Exception):
    """Raised when sending on a session that is not open."""


class TransportOpenFailure(TransportError):
    """The attempt never reached open (connect refused, DNS, handshake)."""


class TransportRuntimeError(TransportError):
    """An error signalled while the session was open."""
