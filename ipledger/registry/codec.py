"""Stable encoding of registrations for the durable store.

Registrations are stored as JSON objects with identities in principal
text form and the status by value. ``encode_registration`` produces
canonical bytes (sorted keys, compact separators) so that equal
registrations always encode identically.
"""

from __future__ import annotations

import json

from ipledger.registry.identity import Identity
from ipledger.registry.models import Registration, RegistrationStatus, TransferRecord


def registration_to_dict(registration: Registration) -> dict:
    return {
        "owner": registration.owner.to_text(),
        "title": registration.title,
        "description": registration.description,
        "timestamp": registration.timestamp,
        "file_hash": registration.file_hash,
        "license_type": registration.license_type,
        "metadata": dict(registration.metadata),
        "transfer_history": [_transfer_to_dict(t) for t in registration.transfer_history],
        "status": registration.status.value,
    }


def registration_from_dict(data: dict) -> Registration:
    return Registration(
        owner=Identity.from_text(data["owner"]),
        title=data.get("title", ""),
        description=data.get("description", ""),
        timestamp=int(data.get("timestamp", 0)),
        file_hash=data["file_hash"],
        license_type=data.get("license_type", ""),
        metadata={str(k): str(v) for k, v in data.get("metadata", {}).items()},
        transfer_history=[_transfer_from_dict(t) for t in data.get("transfer_history", [])],
        status=RegistrationStatus(data.get("status", RegistrationStatus.ACTIVE.value)),
    )


def encode_registration(registration: Registration) -> bytes:
    return json.dumps(
        registration_to_dict(registration), sort_keys=True, separators=(",", ":")
    ).encode("utf-8")


def decode_registration(data: bytes) -> Registration:
    return registration_from_dict(json.loads(data.decode("utf-8")))


def _transfer_to_dict(record: TransferRecord) -> dict:
    return {
        "from": record.from_owner.to_text(),
        "to": record.to_owner.to_text(),
        "timestamp": record.timestamp,
    }


def _transfer_from_dict(data: dict) -> TransferRecord:
    return TransferRecord(
        from_owner=Identity.from_text(data["from"]),
        to_owner=Identity.from_text(data["to"]),
        timestamp=int(data["timestamp"]),
    )
