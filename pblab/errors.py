"""
Structured application errors.

Every error carries a machine-readable ``code``, a ``user_message`` that is safe
to return to callers, and technical ``details`` that are only ever logged.
The HTTP layer maps each class to a status code (see ``pblab.main``).
"""
from typing import Any, Dict, Optional


class PBLabError(Exception):
    """Base class for all application errors."""

    status_code = 500

    def __init__(
        self,
        code: str,
        user_message: str,
        technical_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(technical_message or user_message)
        self.code = code
        self.user_message = user_message
        self.details = details or {}
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Technical representation for logs. Never returned to callers."""
        return {
            "name": type(self).__name__,
            "code": self.code,
            "message": str(self),
            "user_message": self.user_message,
            "details": self.details,
            "context": self.context,
        }


class ValidationError(PBLabError):
    """Malformed or missing input. Raised before any write happens."""

    status_code = 400

    def __init__(self, field: str, reason: str, value: Any = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            "VALIDATION_ERROR",
            f"{field} {reason}",
            f"Validation failed for field '{field}': {reason}",
            {"field": field, "reason": reason, "value": None if value is None else str(value)},
            context,
        )
        self.field = field


class AuthenticationError(PBLabError):
    status_code = 401

    def __init__(self, reason: str = "Authentication required", context: Optional[Dict[str, Any]] = None):
        super().__init__(
            "AUTHENTICATION_ERROR",
            "You must be logged in to perform this action",
            f"Authentication failed: {reason}",
            {"reason": reason},
            context,
        )


class AuthorizationError(PBLabError):
    """Authenticated, but not allowed. The user message never reveals why."""

    status_code = 403

    def __init__(
        self,
        action: str,
        reason: str,
        user_role: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            "AUTHORIZATION_ERROR",
            "You do not have permission to perform this action",
            f"Authorization failed for action '{action}': {reason}",
            {"action": action, "reason": reason, "user_role": user_role},
            context,
        )
        self.action = action
        self.reason = reason


class NotFoundError(PBLabError):
    status_code = 404

    def __init__(self, resource_type: str, resource_id: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        technical = (
            f"{resource_type} with ID '{resource_id}' not found" if resource_id else f"{resource_type} not found"
        )
        super().__init__(
            "NOT_FOUND_ERROR",
            f"{resource_type} not found or you do not have permission to access it",
            technical,
            {"resource_type": resource_type, "resource_id": resource_id},
            context,
        )


class BusinessLogicError(PBLabError):
    """A workflow rule was violated. The explanation is shown as-is."""

    status_code = 409

    def __init__(self, rule: str, explanation: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            "BUSINESS_LOGIC_ERROR",
            explanation,
            f"Business rule violation: {rule}",
            {"rule": rule, "explanation": explanation},
            context,
        )
        self.rule = rule


class TeamSetupError(BusinessLogicError):
    """Problem composition failed while creating teams, memberships, projects or invites."""

    def __init__(self, team_name: str, reason: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            "team_setup_failed",
            f"Team setup failed for team \"{team_name}\"; the problem and everything created with it "
            f"was rolled back: {reason}",
            context,
        )
        self.team_name = team_name


class DatabaseError(PBLabError):
    status_code = 500

    def __init__(
        self,
        operation: str,
        reason: str,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            "DATABASE_ERROR",
            "A database error occurred. Please try again.",
            f"Database operation '{operation}' failed: {reason}",
            {
                "operation": operation,
                "reason": reason,
                "original_error": None if original_error is None else repr(original_error),
            },
            context,
        )
        self.operation = operation


class ExternalServiceError(PBLabError):
    status_code = 502

    def __init__(
        self,
        service: str,
        operation: str,
        reason: str,
        status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            "EXTERNAL_SERVICE_ERROR",
            "External service temporarily unavailable. Please try again.",
            f"{service} {operation} failed: {reason}",
            {"service": service, "operation": operation, "reason": reason, "status": status},
            context,
        )


class ConfigurationError(PBLabError):
    status_code = 500

    def __init__(self, config_key: str, issue: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            "CONFIGURATION_ERROR",
            "Application configuration error. Please contact support.",
            f"Configuration error for '{config_key}': {issue}",
            {"config_key": config_key, "issue": issue},
            context,
        )


def get_user_message(error: BaseException) -> str:
    if isinstance(error, PBLabError):
        return error.user_message
    return f"Unexpected error: {error}"


def get_technical_details(error: BaseException) -> Dict[str, Any]:
    if isinstance(error, PBLabError):
        return error.to_dict()
    return {"name": type(error).__name__, "message": str(error)}
