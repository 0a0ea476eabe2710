# exceptions.py
"""
Typed errors raised by the PDC services.

Every error carries a machine-readable ``code`` and structured attributes so
the API layer can build a response without parsing messages:

     PDCError
     +-- ValidationError
     |   +-- DuplicateChequeError
     |   +-- BulkLimitExceeded
     +-- InvalidTransitionError
     +-- ConcurrencyConflict
     +-- NotFoundError
     +-- AuthorizationError
     +-- ChainIntegrityError
"""
from typing import Any, Optional


class PDCError(Exception):
     """Base class for all PDC domain errors."""

     code: str = "PDC_ERROR"

     def __init__(self, message: str):
          super().__init__(message)
          self.message = message

     def to_dict(self) -> dict[str, Any]:
          return {"error": self.code, "detail": self.message}


class ValidationError(PDCError):
     """Missing/invalid field, duplicate cheque number or bad bulk count."""

     code = "VALIDATION_ERROR"

     def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None):
          super().__init__(message)
          self.errors = errors or []

     def to_dict(self) -> dict[str, Any]:
          body = super().to_dict()
          if self.errors:
               body["errors"] = self.errors
          return body


class DuplicateChequeError(ValidationError):
     code = "DUPLICATE_CHEQUE_NUMBER"

     def __init__(self, cheque_number: str, tenant_id: int, errors: Optional[list[dict[str, Any]]] = None):
          super().__init__(
               f"Cheque number {cheque_number} already exists for tenant {tenant_id}",
               errors,
          )
          self.cheque_number = cheque_number
          self.tenant_id = tenant_id


class BulkLimitExceeded(ValidationError):
     code = "BULK_LIMIT_EXCEEDED"

     def __init__(self, submitted: int, limit: int):
          super().__init__(f"Cannot register {submitted} PDCs at once (maximum {limit})")
          self.submitted = submitted
          self.limit = limit

     def to_dict(self) -> dict[str, Any]:
          body = super().to_dict()
          body.update({"submitted": self.submitted, "limit": self.limit})
          return body


class InvalidTransitionError(PDCError):
     """The cheque's current status is not a valid origin for the requested action."""

     code = "INVALID_TRANSITION"

     def __init__(self, current_status: str, requested_action: str, reason: Optional[str] = None):
          message = f"Cannot {requested_action} a PDC in status {current_status}"
          if reason:
               message = f"{message}: {reason}"
          super().__init__(message)
          self.current_status = current_status
          self.requested_action = requested_action

     def to_dict(self) -> dict[str, Any]:
          body = super().to_dict()
          body.update({
               "current_status": self.current_status,
               "requested_action": self.requested_action,
          })
          return body


class ConcurrencyConflict(PDCError):
     """The caller's expected revision is stale; refetch and reapply."""

     code = "CONCURRENCY_CONFLICT"
     retryable = True

     def __init__(self, pdc_id: str, expected_revision: Optional[int], current_revision: Optional[int]):
          super().__init__(
               f"PDC {pdc_id} was modified concurrently "
               f"(expected revision {expected_revision}, current revision {current_revision})"
          )
          self.pdc_id = pdc_id
          self.expected_revision = expected_revision
          self.current_revision = current_revision

     def to_dict(self) -> dict[str, Any]:
          body = super().to_dict()
          body.update({
               "expected_revision": self.expected_revision,
               "current_revision": self.current_revision,
               "retryable": self.retryable,
          })
          return body


class NotFoundError(PDCError):
     code = "NOT_FOUND"

     def __init__(self, entity: str, entity_id: Any):
          super().__init__(f"{entity} with ID {entity_id} not found")
          self.entity = entity
          self.entity_id = entity_id


class AuthorizationError(PDCError):
     code = "FORBIDDEN"


class ChainIntegrityError(PDCError):
     """Replacement chain or terminal-state corruption detected in stored data."""

     code = "CHAIN_INTEGRITY_ERROR"

     def __init__(self, message: str, pdc_id: Optional[str] = None):
          super().__init__(message)
          self.pdc_id = pdc_id
