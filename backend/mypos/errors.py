# Overview: Ledger error taxonomy shared by services and routes.

"""
Ledger errors

Every failure a ledger operation can surface is one of three kinds:

- ValidationError: the request itself is wrong (empty cart, bad quantity,
  unknown payment type, short payment). Raised before any write.
- ReferentialError: an id points at nothing usable (unknown or inactive
  user, customer, supplier, product or sale).
- StorageFailure: the database failed during execute or commit. The
  original exception is chained as __cause__.

Each error carries a stable machine code and a details dict so routes can
render {"error", "code", "details"} without string matching.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger operation failures."""

    code = "LEDGER_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class ValidationError(LedgerError):
    """400-level input problem."""

    code = "VALIDATION_ERROR"


class EmptyCartError(ValidationError):
    code = "EMPTY_CART"


class InvalidQuantityError(ValidationError):
    code = "INVALID_QUANTITY"


class InvalidAmountError(ValidationError):
    code = "INVALID_AMOUNT"


class MissingSnapshotError(ValidationError):
    code = "MISSING_SNAPSHOT"


class InvalidPaymentTypeError(ValidationError):
    code = "INVALID_PAYMENT_TYPE"


class InsufficientPaymentError(ValidationError):
    code = "INSUFFICIENT_PAYMENT"


class InsufficientStockError(ValidationError):
    code = "INSUFFICIENT_STOCK"


class ReturnQuantityExceededError(ValidationError):
    code = "RETURN_QUANTITY_EXCEEDED"


class DuplicateDocumentNumberError(ValidationError):
    code = "DUPLICATE_DOCUMENT_NUMBER"


class PayloadError(ValidationError):
    """Malformed HTTP request body or query string."""

    code = "INVALID_PAYLOAD"


class ReferentialError(LedgerError):
    """Unknown or unusable reference (user, customer, supplier, product, sale)."""

    code = "NOT_FOUND"


class StorageFailure(LedgerError):
    """Database failure inside a transactional scope; the scope was rolled back."""

    code = "STORAGE_FAILURE"
