"""Caller middleware -- FastAPI dependencies for the registry and the caller.

The API sits behind a trusted host boundary (gateway or replica) that has
already authenticated the caller and forwards their principal in the
``X-Caller-Principal`` header. This module turns that header into a
``CallerContext`` and hands out the shared ``IPRegistry``.
"""

from __future__ import annotations

import threading
from typing import Optional

from fastapi import Header, HTTPException, status

from ipledger.config import build_registry, load_settings
from ipledger.registry.context import CallerContext, SystemCallerContext
from ipledger.registry.errors import InvalidIdentityError
from ipledger.registry.identity import Identity
from ipledger.registry.service import IPRegistry

CALLER_HEADER = "X-Caller-Principal"

# Shared registry instance, built on first use
_registry: Optional[IPRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> IPRegistry:
    """Return the singleton IPRegistry, built from settings on first call."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = build_registry(load_settings())
        return _registry


def parse_principal(value: str) -> Identity:
    """Parse a principal from a path or body value, or raise 400."""
    try:
        return Identity.from_text(value)
    except InvalidIdentityError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


async def get_caller(
    x_caller_principal: Optional[str] = Header(None, alias=CALLER_HEADER),
) -> CallerContext:
    """FastAPI dependency that builds the caller context from the trusted header.

    Raises ``401 Unauthorized`` when the header is missing and ``400`` when
    it does not hold a valid principal.
    """
    if not x_caller_principal:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {CALLER_HEADER} header",
        )
    return SystemCallerContext(parse_principal(x_caller_principal))
