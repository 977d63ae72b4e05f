"""FastAPI application for the ipledger IP ownership registry.

Provides REST API endpoints wrapping the ipledger package for:
- Registering IP claims against content hashes
- Transferring ownership and updating registration status
- Looking up, verifying, and searching registrations
- Reading a content hash's transfer history
"""

from __future__ import annotations

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ipledger import __version__
from ipledger.registry.service import IPRegistry
from web.backend.app.middleware.auth import get_registry
from web.backend.app.routers import registry

app = FastAPI(
    title="ipledger API",
    description=(
        "REST API for the ipledger ownership registry. "
        "Callers are identified by the X-Caller-Principal header set by the trusted host."
    ),
    version=__version__,
)

# ---------------------------------------------------------------------------
# CORS (open; the trusted gateway in front decides who may call)
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(registry.router)


# ---------------------------------------------------------------------------
# Root and health-check endpoints
# ---------------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root():
    return {"name": "ipledger API", "version": __version__, "docs": "/docs"}


@app.get("/health", tags=["meta"])
def health_check(ledger: IPRegistry = Depends(get_registry)):
    """Report healthy once the registry store can be read."""
    return {"status": "healthy", "registrations": len(ledger.list_registrations())}
