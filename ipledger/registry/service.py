"""The IP registry service.

``IPRegistry`` owns a ``RegistryStore`` and enforces the ledger rules on
top of it:

- a registration lives under its current owner's identity, one per owner
- only the holder of a registration (matched by file hash) may transfer it
  or change its status
- transfers append to the registration's history and relocate it under the
  new owner's identity in a single store commit

Every operation runs under the service's lock, and mutations also hold the
store's transaction, so concurrent hosts (threads or processes sharing a
file store) observe operations as if they were applied one at a time.
"""

from __future__ import annotations

import threading
from typing import Optional

from ipledger.registry.context import CallerContext
from ipledger.registry.errors import IPLedgerError, NotFoundError, OwnershipMismatchError
from ipledger.registry.identity import Identity
from ipledger.registry.models import Registration, RegistrationStatus, TransferRecord
from ipledger.registry.store import RegistryStore
from ipledger.security.audit_log import AuditLogger
from ipledger.utils.logger import get_logger

logger = get_logger("registry.service")


class IPRegistry:
    """Ownership ledger for IP claims, keyed by owner identity."""

    def __init__(self, store: RegistryStore, audit: Optional[AuditLogger] = None):
        self.store = store
        self.audit = audit
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def register_ip(
        self,
        ctx: CallerContext,
        title: str,
        description: str,
        file_hash: str,
        license_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> Registration:
        """Register ``file_hash`` to the caller.

        Replaces whatever the caller previously had registered. The hash is
        not checked for uniqueness across owners.
        """
        caller = ctx.identity()
        now = ctx.logical_time()
        registration = Registration(
            owner=caller,
            title=title,
            description=description,
            timestamp=now,
            file_hash=file_hash,
            license_type=license_type,
            metadata=dict(metadata or {}),
        )

        with self._lock, self.store.transaction():
            previous = self.store.get(caller)
            self.store.put(caller, registration)

        if previous is not None and previous.file_hash != file_hash:
            logger.warning(
                f"{caller} replaced registration of {previous.file_hash} with {file_hash}"
            )
        logger.info(f"Registered {file_hash} to {caller}")
        self._audit(ctx, "register", file_hash, now, details={"title": title, "license_type": license_type})
        return registration

    def transfer_ownership(self, ctx: CallerContext, file_hash: str, new_owner: Identity) -> Registration:
        """Move the caller's registration of ``file_hash`` to ``new_owner``.

        Any registration ``new_owner`` already held is overwritten.
        """
        caller = ctx.identity()
        now = ctx.logical_time()
        details = {"to": new_owner.to_text()}
        try:
            with self._lock, self.store.transaction():
                registration = self._owned_registration(caller, file_hash)

                registration.transfer_history.append(
                    TransferRecord(from_owner=caller, to_owner=new_owner, timestamp=now)
                )
                registration.owner = new_owner
                registration.status = RegistrationStatus.TRANSFERRED

                displaced = self.store.get(new_owner) if new_owner != caller else None
                self.store.move(caller, new_owner, registration)
        except IPLedgerError as exc:
            self._audit_failure(ctx, "transfer", file_hash, now, exc, details)
            raise

        if displaced is not None:
            logger.warning(f"Transfer to {new_owner} overwrote its registration of {displaced.file_hash}")
        logger.info(f"Transferred {file_hash} from {caller} to {new_owner}")
        self._audit(ctx, "transfer", file_hash, now, details=details)
        return registration

    def update_registration_status(
        self, ctx: CallerContext, file_hash: str, status: RegistrationStatus
    ) -> Registration:
        """Set the status of the caller's registration of ``file_hash``.

        Any transition is allowed, including back to Active.
        """
        caller = ctx.identity()
        now = ctx.logical_time()
        status = RegistrationStatus.parse(status)
        details = {"status": status.value}
        try:
            with self._lock, self.store.transaction():
                registration = self._owned_registration(caller, file_hash)
                details["previous"] = registration.status.value
                registration.status = status
                self.store.put(caller, registration)
        except IPLedgerError as exc:
            self._audit_failure(ctx, "update_status", file_hash, now, exc, details)
            raise

        logger.info(f"Status of {file_hash} held by {caller} set to {status.value}")
        self._audit(ctx, "update_status", file_hash, now, details=details)
        return registration

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_ip_registration(self, owner: Identity) -> Optional[Registration]:
        with self._lock:
            return self.store.get(owner)

    def verify_ownership(self, owner: Identity, file_hash: str) -> bool:
        """True iff ``owner`` currently holds a registration of ``file_hash``."""
        registration = self.get_ip_registration(owner)
        return registration is not None and registration.file_hash == file_hash

    def search_registrations(self, query: str) -> list[Registration]:
        """Registrations whose title, description, or license contain ``query``.

        Matching ignores case. Results come in owner key order.
        """
        with self._lock:
            results = [reg for _, reg in self.store.iterate() if reg.matches(query)]
        logger.debug(f"Search {query!r} matched {len(results)} registrations")
        return results

    def get_transfer_history(self, file_hash: str) -> list[TransferRecord]:
        """Transfer history of the first registration (in key order) of ``file_hash``."""
        with self._lock:
            for _, registration in self.store.iterate():
                if registration.file_hash == file_hash:
                    return list(registration.transfer_history)
        raise NotFoundError(file_hash=file_hash)

    def list_registrations(self) -> list[Registration]:
        with self._lock:
            return [reg for _, reg in self.store.iterate()]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _owned_registration(self, caller: Identity, file_hash: str) -> Registration:
        registration = self.store.get(caller)
        if registration is None:
            raise NotFoundError(owner=caller.to_text(), file_hash=file_hash)
        if registration.file_hash != file_hash:
            raise OwnershipMismatchError(owner=caller.to_text(), file_hash=file_hash)
        return registration

    def _audit(self, ctx: CallerContext, action: str, file_hash: str, now: int, details: dict) -> None:
        if self.audit is None:
            return
        self.audit.log_event(
            actor=ctx.identity().to_text(),
            action=action,
            resource_id=file_hash,
            logical_time=now,
            details=details,
        )

    def _audit_failure(
        self, ctx: CallerContext, action: str, file_hash: str, now: int, exc: IPLedgerError, details: dict
    ) -> None:
        logger.warning(f"{action} of {file_hash} by {ctx.identity()} rejected: {exc.message}")
        if self.audit is None:
            return
        self.audit.log_event(
            actor=ctx.identity().to_text(),
            action=action,
            resource_id=file_hash,
            logical_time=now,
            details=details,
            success=False,
            error_code=exc.code,
        )
