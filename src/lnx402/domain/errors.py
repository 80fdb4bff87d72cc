"""Domain-specific exceptions."""

from __future__ import annotations

from typing import Optional


class InvalidInvoiceFormat(ValueError):
    """Raised when a BOLT11 string fails checksum, prefix or field decoding."""


class InvalidPaymentRequirements(ValueError):
    """Raised when a PaymentRequirements object is not well-formed."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class BackendUnavailable(Exception):
    """Raised when the Lightning backend cannot be reached or times out.

    This is a transient condition and never a verdict on the payment itself.
    """

    def __init__(self, message: str, *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
