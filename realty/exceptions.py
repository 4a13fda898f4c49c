# realty/exceptions.py
"""
Error taxonomy for the catalog boundary.
"""


class CatalogError(Exception):
    """Base exception for every failure talking to the catalog service."""
    pass


class TransportError(CatalogError):
    """The catalog service could not be reached or did not answer in time."""
    pass


class RemoteError(CatalogError):
    """The catalog service answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str):
        super().__init__(f"HTTP {status_code}: {reason}")
        self.status_code = status_code
        self.reason = reason


class RemoteRejection(RemoteError):
    """4xx: the service refused the request as sent (validation, conflict...)."""
    pass


class RemoteFault(RemoteError):
    """5xx: the service failed while handling a valid request."""
    pass

