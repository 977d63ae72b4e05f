"""Pydantic models for API request/response serialization.

These models mirror the ipledger dataclasses and provide proper JSON
serialization for the FastAPI endpoints. Identities travel as principal
text.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ipledger.registry.models import Registration, RegistrationStatus, TransferRecord


# ---------------------------------------------------------------------------
# Registry models
# ---------------------------------------------------------------------------


class TransferRecordResponse(BaseModel):
    """Mirrors ipledger.registry.models.TransferRecord."""

    from_owner: str
    to_owner: str
    timestamp: int

    @classmethod
    def from_record(cls, record: TransferRecord) -> TransferRecordResponse:
        return cls(
            from_owner=record.from_owner.to_text(),
            to_owner=record.to_owner.to_text(),
            timestamp=record.timestamp,
        )


class RegistrationResponse(BaseModel):
    """Mirrors ipledger.registry.models.Registration."""

    owner: str
    title: str
    description: str = ""
    timestamp: int = 0
    file_hash: str
    license_type: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)
    transfer_history: list[TransferRecordResponse] = Field(default_factory=list)
    status: RegistrationStatus = RegistrationStatus.ACTIVE

    @classmethod
    def from_registration(cls, registration: Registration) -> RegistrationResponse:
        return cls(
            owner=registration.owner.to_text(),
            title=registration.title,
            description=registration.description,
            timestamp=registration.timestamp,
            file_hash=registration.file_hash,
            license_type=registration.license_type,
            metadata=dict(registration.metadata),
            transfer_history=[
                TransferRecordResponse.from_record(r) for r in registration.transfer_history
            ],
            status=registration.status,
        )


class RegisterRequest(BaseModel):
    title: str
    description: str = ""
    file_hash: str = Field(..., min_length=1)
    license_type: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)


class TransferRequest(BaseModel):
    file_hash: str = Field(..., min_length=1)
    new_owner: str = Field(..., description="Principal text of the new owner")


class StatusUpdateRequest(BaseModel):
    file_hash: str = Field(..., min_length=1)
    status: RegistrationStatus


class VerifyResponse(BaseModel):
    owner: str
    file_hash: str
    verified: bool


class SearchResponse(BaseModel):
    query: str
    results: list[RegistrationResponse] = Field(default_factory=list)
    total_count: int = 0


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict[str, str] = Field(default_factory=dict)
