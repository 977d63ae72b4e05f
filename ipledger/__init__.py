"""ipledger — an ownership ledger for intellectual-property claims."""

__version__ = "0.1.0"
