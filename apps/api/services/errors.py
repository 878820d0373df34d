"""Domain error taxonomy shared by services and routers."""

from __future__ import annotations

from typing import Any, Dict, Optional


class AuditCreditsError(Exception):
    """Base class for expected, user-presentable failures."""

    code = "error"
    status_code = 400

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message())
        self.message = message or self.default_message()

    def default_message(self) -> str:
        return "Request failed."

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "code": self.code, "message": self.message}


class InvalidAmount(AuditCreditsError):
    code = "invalid_amount"
    status_code = 422

    def default_message(self) -> str:
        return "Amount must be a positive integer."


class InsufficientFunds(AuditCreditsError):
    """Ledger-level refusal: the account cannot cover the requested amount."""

    code = "insufficient_funds"
    status_code = 402

    def __init__(self, required: int, available: int, message: Optional[str] = None):
        self.required = int(required)
        self.available = int(available)
        super().__init__(message)

    def default_message(self) -> str:
        return f"Insufficient credits. Required: {self.required}, available: {self.available}."

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update({"required": self.required, "available": self.available})
        return payload


class InsufficientCredits(InsufficientFunds):
    """Gate-level refusal surfaced to the viewer with the exact shortfall."""

    code = "insufficient_credits"


class SelfTransfer(AuditCreditsError):
    code = "self_transfer"
    status_code = 422

    def default_message(self) -> str:
        return "Cannot transfer credits to yourself."


class MissingWallet(AuditCreditsError):
    code = "missing_wallet"
    status_code = 422

    def default_message(self) -> str:
        return "Wallet address is required."


class NotFound(AuditCreditsError, LookupError):
    code = "not_found"
    status_code = 404

    def default_message(self) -> str:
        return "Resource not found."


class InvalidDateCode(AuditCreditsError):
    code = "invalid_date_code"
    status_code = 422

    def default_message(self) -> str:
        return "date_code must be an 8-digit YYYYMMDD string."


class ReportNotAvailable(AuditCreditsError):
    code = "report_not_available"
    status_code = 409

    def default_message(self) -> str:
        return "This report is not available for viewing."


class InvalidTransition(AuditCreditsError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, requested: str, message: Optional[str] = None):
        self.current = current
        self.requested = requested
        super().__init__(message)

    def default_message(self) -> str:
        return f"Cannot change report status from '{self.current}' to '{self.requested}'."


class PermissionDenied(AuditCreditsError):
    code = "permission_denied"
    status_code = 403

    def default_message(self) -> str:
        return "Permission denied: only whitelist users can perform this action."


class ReportArchived(PermissionDenied):
    code = "report_archived"

    def default_message(self) -> str:
        return "This report is archived and cannot be modified."


class InvalidWalletProof(PermissionDenied):
    code = "invalid_wallet_proof"

    def default_message(self) -> str:
        return "Wallet ownership could not be verified."


class NotAuthenticated(AuditCreditsError):
    code = "not_authenticated"
    status_code = 401

    def default_message(self) -> str:
        return "User not authenticated."


class OperationTimeout(AuditCreditsError, TimeoutError):
    code = "timeout"
    status_code = 504

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{operation} timed out after {timeout_seconds:g}s.")
