"""Registry exceptions.

Every operation either completes or raises one of these. ``NotFoundError``
and ``OwnershipMismatchError`` are the expected, caller-facing failures;
``StorageError`` means the durable store itself is unusable and is not
something a caller can recover from.
"""

from __future__ import annotations

from typing import Any, Optional


class IPLedgerError(Exception):
    """Base exception for all ipledger errors."""

    def __init__(self, message: str, code: str = "IPLEDGER_ERROR", **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details: dict[str, Any] = dict(details)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFoundError(IPLedgerError):
    """No registration at the expected key."""

    def __init__(self, message: str = "IP registration not found", **details: Any) -> None:
        super().__init__(message, code="NOT_FOUND", **details)


class OwnershipMismatchError(IPLedgerError):
    """A registration exists, but not for the claimed file hash."""

    def __init__(self, message: str = "You don't own this IP", **details: Any) -> None:
        super().__init__(message, code="OWNERSHIP_MISMATCH", **details)


class InvalidIdentityError(IPLedgerError, ValueError):
    """An identity token or its text form could not be parsed."""

    def __init__(self, message: str, value: Optional[str] = None) -> None:
        super().__init__(message, code="INVALID_IDENTITY")
        if value is not None:
            self.details["value"] = value


class StorageError(IPLedgerError):
    """The durable store could not be read or written."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message, code="STORAGE_ERROR", **details)


class ConfigurationError(IPLedgerError):
    """A configuration file or environment value is invalid."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message, code="CONFIG_ERROR", **details)
