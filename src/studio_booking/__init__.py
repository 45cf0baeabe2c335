"""studio-booking: class occurrence, booking and credit ledger engine."""

__version__ = "0.1.0"
