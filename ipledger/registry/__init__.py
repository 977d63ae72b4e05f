"""Registry — the source of truth for IP ownership claims.

The registry provides:
- Registration: record who owns a content hash, with licensing metadata
- Transfer: move a registration to a new owner, appending to its history
- Verification: answer whether an identity holds a given content hash
- Discovery: free-text search and transfer-history lookup
"""
