# Overview: Error taxonomy shared by services and the HTTP layer.

"""
Storefront errors.

Every service raises one of these; the HTTP layer turns them into JSON
responses with the matching status code (see routes/__init__.py).

- ValidationError:     bad or missing input, rejected before any store access
- AuthorizationError:  caller lacks the role or organizational scope
- NotFoundError:       missing entity, or one hidden by tenant visibility
- ConflictError:       duplicate creation or mutation of an immutable row
- BusinessRuleError:   expected user-facing refusal (e.g. empty cart)
- TransactionFailure:  database error inside a transaction (already rolled back)
- CollaboratorFailure: asset store / notifier failure; after commit it is logged
                       and swallowed, before commit (upload for a new row) it
                       aborts the operation
"""

from __future__ import annotations


class StorefrontError(Exception):
    """Base class for expected, typed service failures."""

    status_code = 500
    error_type = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "type": self.error_type}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(StorefrontError, ValueError):
    """400-level input problem."""

    status_code = 400
    error_type = "validation_error"


class AuthorizationError(StorefrontError):
    """403-level role or tenant scope failure."""

    status_code = 403
    error_type = "authorization_error"


class NotFoundError(StorefrontError):
    status_code = 404
    error_type = "not_found"


class ConflictError(StorefrontError):
    """409-level business rule conflict (e.g., duplicate SKU)."""

    status_code = 409
    error_type = "conflict"


class BusinessRuleError(StorefrontError):
    status_code = 400
    error_type = "business_rule"

    def __init__(self, code: str, message: str, details: dict | None = None):
        super().__init__(message, details)
        self.code = code

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["code"] = self.code
        return payload


class TransactionFailure(StorefrontError):
    """A multi-statement operation failed and was rolled back."""

    status_code = 500
    error_type = "transaction_failure"

    def __init__(self, message: str, *, retryable: bool = False, details: dict | None = None):
        super().__init__(message, details)
        self.retryable = retryable
        if retryable:
            self.status_code = 503


class CollaboratorFailure(StorefrontError):
    """Asset store or notifier failure. Swallowed and logged once the owning transaction has committed."""

    status_code = 502
    error_type = "collaborator_failure"

    def __init__(self, collaborator: str, message: str):
        super().__init__(message, {"collaborator": collaborator})
        self.collaborator = collaborator
