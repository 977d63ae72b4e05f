"""Registry router -- register, transfer, and look up IP ownership claims."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from ipledger.registry.context import CallerContext
from ipledger.registry.errors import IPLedgerError, NotFoundError, OwnershipMismatchError
from ipledger.registry.service import IPRegistry

from web.backend.app.middleware.auth import get_caller, get_registry, parse_principal
from web.backend.app.models.api import (
    ErrorResponse,
    RegisterRequest,
    RegistrationResponse,
    SearchResponse,
    StatusUpdateRequest,
    TransferRecordResponse,
    TransferRequest,
    VerifyResponse,
)

router = APIRouter(prefix="/api/registrations", tags=["registrations"])

_ERROR_STATUS = {
    NotFoundError: 404,
    OwnershipMismatchError: 403,
}

_ERROR_RESPONSES = {
    403: {"model": ErrorResponse, "description": "Caller does not own this IP"},
    404: {"model": ErrorResponse, "description": "IP registration not found"},
}


def _raise_http(exc: IPLedgerError):
    status_code = _ERROR_STATUS.get(type(exc))
    if status_code is None:
        raise exc
    raise HTTPException(status_code=status_code, detail=exc.to_dict())


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=RegistrationResponse,
    status_code=201,
    summary="Register an IP claim",
)
def register_ip(
    body: RegisterRequest,
    caller: CallerContext = Depends(get_caller),
    registry: IPRegistry = Depends(get_registry),
):
    """Register ``file_hash`` to the caller, replacing the caller's previous claim."""
    registration = registry.register_ip(
        caller,
        title=body.title,
        description=body.description,
        file_hash=body.file_hash,
        license_type=body.license_type,
        metadata=body.metadata,
    )
    return RegistrationResponse.from_registration(registration)


@router.post(
    "/transfer",
    response_model=RegistrationResponse,
    responses=_ERROR_RESPONSES,
    summary="Transfer ownership",
)
def transfer_ownership(
    body: TransferRequest,
    caller: CallerContext = Depends(get_caller),
    registry: IPRegistry = Depends(get_registry),
):
    """Move the caller's registration of ``file_hash`` to ``new_owner``."""
    new_owner = parse_principal(body.new_owner)
    try:
        registration = registry.transfer_ownership(caller, body.file_hash, new_owner)
    except IPLedgerError as exc:
        _raise_http(exc)
    return RegistrationResponse.from_registration(registration)


@router.put(
    "/status",
    response_model=RegistrationResponse,
    responses=_ERROR_RESPONSES,
    summary="Update registration status",
)
def update_registration_status(
    body: StatusUpdateRequest,
    caller: CallerContext = Depends(get_caller),
    registry: IPRegistry = Depends(get_registry),
):
    """Set the status of the caller's registration of ``file_hash``."""
    try:
        registration = registry.update_registration_status(caller, body.file_hash, body.status)
    except IPLedgerError as exc:
        _raise_http(exc)
    return RegistrationResponse.from_registration(registration)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=list[RegistrationResponse],
    summary="List all registrations",
)
def list_registrations(registry: IPRegistry = Depends(get_registry)):
    """List every registration in owner order."""
    return [RegistrationResponse.from_registration(r) for r in registry.list_registrations()]


@router.get(
    "/search",
    response_model=SearchResponse,
    summary="Search registrations",
)
def search_registrations(
    q: str = Query(..., description="Case-insensitive text matched against title, description, and license"),
    registry: IPRegistry = Depends(get_registry),
):
    results = registry.search_registrations(q)
    return SearchResponse(
        query=q,
        results=[RegistrationResponse.from_registration(r) for r in results],
        total_count=len(results),
    )


@router.get(
    "/history/{file_hash}",
    response_model=list[TransferRecordResponse],
    responses=_ERROR_RESPONSES,
    summary="Transfer history of a file hash",
)
def get_transfer_history(file_hash: str, registry: IPRegistry = Depends(get_registry)):
    try:
        records = registry.get_transfer_history(file_hash)
    except IPLedgerError as exc:
        _raise_http(exc)
    return [TransferRecordResponse.from_record(r) for r in records]


@router.get(
    "/owner/{principal}",
    response_model=RegistrationResponse,
    responses=_ERROR_RESPONSES,
    summary="Get the registration held by an owner",
)
def get_ip_registration(principal: str, registry: IPRegistry = Depends(get_registry)):
    registration = registry.get_ip_registration(parse_principal(principal))
    if registration is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "NOT_FOUND", "message": f"No registration held by {principal}"},
        )
    return RegistrationResponse.from_registration(registration)


@router.get(
    "/owner/{principal}/verify",
    response_model=VerifyResponse,
    summary="Verify that an owner holds a file hash",
)
def verify_ownership(
    principal: str,
    file_hash: str = Query(..., min_length=1),
    registry: IPRegistry = Depends(get_registry),
):
    owner = parse_principal(principal)
    return VerifyResponse(
        owner=principal,
        file_hash=file_hash,
        verified=registry.verify_ownership(owner, file_hash),
    )
