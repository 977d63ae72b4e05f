"""Registry data models — registrations, transfer records, and status."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ipledger.registry.identity import Identity


class RegistrationStatus(str, Enum):
    """Lifecycle of a registration. Intended order: Active -> Transferred -> Expired."""

    ACTIVE = "Active"
    TRANSFERRED = "Transferred"
    EXPIRED = "Expired"

    @classmethod
    def parse(cls, value: str | RegistrationStatus) -> RegistrationStatus:
        """Accept a status by value or name, case-insensitively."""
        if isinstance(value, RegistrationStatus):
            return value
        for status in cls:
            if value.lower() in (status.value.lower(), status.name.lower()):
                return status
        raise ValueError(f"Unknown registration status: {value!r}")


@dataclass(frozen=True)
class TransferRecord:
    """One ownership change. Never modified once appended to a history."""

    from_owner: Identity
    to_owner: Identity
    timestamp: int


@dataclass
class Registration:
    """One identity's claim over a content hash."""

    owner: Identity
    title: str
    description: str
    timestamp: int  # Host logical time at registration
    file_hash: str
    license_type: str
    metadata: dict[str, str] = field(default_factory=dict)
    transfer_history: list[TransferRecord] = field(default_factory=list)
    status: RegistrationStatus = RegistrationStatus.ACTIVE

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on title, description, and license."""
        needle = query.lower()
        return (
            needle in self.title.lower()
            or needle in self.description.lower()
            or needle in self.license_type.lower()
        )
