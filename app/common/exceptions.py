"""
Error taxonomy shared by every module.

Services raise these the same way they raise ``HTTPException``; each one
carries a stable machine-readable ``kind`` that the handlers in
``app.main`` put next to the human-readable message.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    kind = "error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        **extra: Any
    ):
        super().__init__(status_code=status_code or self.status_code, detail=message, headers=headers)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, **self.extra}


class NotFoundError(AppError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ClientNotFound(NotFoundError):
    def __init__(self, client_id: Any):
        super().__init__("Client not found", resource="client", id=str(client_id))


class InvoiceNotFound(NotFoundError):
    def __init__(self, invoice_id: Any):
        super().__init__("Invoice not found", resource="invoice", id=str(invoice_id))


class InvalidDataError(AppError):
    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class BalanceViolation(AppError):
    kind = "balance_violation"
    status_code = status.HTTP_400_BAD_REQUEST


class PaymentExceedsBalance(BalanceViolation):
    def __init__(self, amount: Any, balance_due: Any):
        super().__init__(
            f"Payment of {amount} exceeds the outstanding balance of {balance_due}",
            amount=str(amount),
            balance_due=str(balance_due)
        )


class ConflictError(AppError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class ConcurrentModification(ConflictError):
    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"The {resource} was modified by another request, retry the operation",
            resource=resource,
            id=str(resource_id)
        )


class AuthenticationError(AppError):
    kind = "authentication_error"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class PermissionDenied(AppError):
    kind = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


class DocumentGenerationFailed(AppError):
    kind = "document_generation_failed"

    INVOICE_INCOMPLETE = "invoice_incomplete"
    RENDERERS_EXHAUSTED = "renderers_exhausted"

    def __init__(self, message: str, reason: str, **extra: Any):
        status_code = (
            status.HTTP_422_UNPROCESSABLE_ENTITY
            if reason == self.INVOICE_INCOMPLETE
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        super().__init__(message, status_code=status_code, reason=reason, **extra)
        self.reason = reason


class DependencyUnavailable(AppError):
    kind = "dependency_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ClientInUse(ConflictError):
    def __init__(self, client_id: Any, invoice_count: int):
        super().__init__(
            "Client has invoices and cannot be deleted",
            resource="client",
            id=str(client_id),
            invoice_count=invoice_count
        )
