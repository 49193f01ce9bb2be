# Overview: Domain error taxonomy shared by pricing, stock and invoice services.

"""
Every recoverable business failure is one of these classes.

Collaborators (item catalog, invoice store) never raise them across their
boundary; they hand them back inside a Result (see results.py) so the invoice
workflow can decide whether to compensate. The workflow and the pure
calculators raise them directly and routes map them to HTTP status codes.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for business-rule failures."""

    code = "domain_error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(DomainError, ValueError):
    """Missing or out-of-range input. User corrects and resubmits."""

    code = "validation_error"
    http_status = 400


class NotFound(DomainError):
    """Referenced item or invoice does not exist."""

    code = "not_found"
    http_status = 404


class InsufficientStock(DomainError):
    """A sales line asks for more units than the item has in stock."""

    code = "insufficient_stock"
    http_status = 409


class InvalidTransition(DomainError):
    """Requested status is not legal for the invoice type/current status."""

    code = "invalid_transition"
    http_status = 409


class ImportRestricted(DomainError):
    """Business rule refused copying one invoice into a new draft."""

    code = "import_restricted"
    http_status = 409


class PartialCommit(DomainError):
    """
    Invoice was persisted but its stock effect could not be applied or undone.

    details["invoice_id"] names the invoice left with stock_applied=False.
    """

    code = "partial_commit"
    http_status = 500


class StockUpdateFailed(DomainError):
    """The catalog could not write a stock change (database error). Safe to retry."""

    code = "stock_update_failed"
    http_status = 503
