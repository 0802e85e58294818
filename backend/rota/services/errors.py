from typing import Any, Dict, Optional


class RotaError(Exception):
    """Base class for errors raised by the rota engines and services.

    Every error is scoped to the operator action that triggered it; the error
    handler turns it into a JSON error envelope.
    """

    code = "ROTA_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        error = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return error


class NotFoundError(RotaError):
    code = "NOT_FOUND"
    status_code = 404


class PreconditionError(RotaError):
    code = "PRECONDITION_FAILED"
    status_code = 400


class ConfirmationRequiredError(RotaError):
    """Raised when a destructive or visibility-changing action is not confirmed."""

    code = "CONFIRMATION_REQUIRED"
    status_code = 409

    def __init__(self, action: str, affected: int, message: Optional[str] = None):
        super().__init__(
            message or f"{action} affects {affected} shift(s) and must be confirmed",
            details={"action": action, "affected": affected},
        )
        self.action = action
        self.affected = affected


class ImportBlockedError(RotaError):
    code = "IMPORT_BLOCKED"
    status_code = 422


class RotaDisabledError(RotaError):
    code = "ROTA_DISABLED"
    status_code = 403

    def __init__(self, message: str = "The rota system is disabled for this company"):
        super().__init__(message)


class FeatureDisabledError(RotaError):
    code = "FEATURE_DISABLED"
    status_code = 403


class PersistenceError(RotaError):
    code = "PERSISTENCE_ERROR"
    status_code = 503
