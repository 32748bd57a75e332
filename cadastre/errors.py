from __future__ import annotations

from typing import Any


class ApiError(Exception):
    def __init__(
        self,
        *,
        code: str,
        message: str,
        error_class: str,
        retryable: bool,
        http_status: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.error_class = error_class
        self.retryable = retryable
        self.http_status = http_status
        self.details = details


class AuthenticationError(ApiError):
    def __init__(self, message: str = "actor identity required", *, code: str = "AUTH_UNAUTHORIZED") -> None:
        super().__init__(
            code=code,
            message=message,
            error_class="security_sensitive",
            retryable=False,
            http_status=401,
        )


class AuthorizationError(ApiError):
    def __init__(self, message: str, *, code: str = "AUTH_FORBIDDEN") -> None:
        super().__init__(
            code=code,
            message=message,
            error_class="security_sensitive",
            retryable=False,
            http_status=403,
        )


class InvalidStateTransition(ApiError):
    def __init__(self, *, action: str, current_status: str, entity: str = "job") -> None:
        super().__init__(
            code="WF_STATE_TRANSITION_INVALID",
            message=f"invalid transition: {entity} in {current_status} does not allow {action}",
            error_class="business_rule",
            retryable=False,
            http_status=409,
            details={"entity": entity, "action": action, "current_status": current_status},
        )
        self.action = action
        self.current_status = current_status


class PreconditionNotMet(ApiError):
    def __init__(self, message: str, *, code: str = "WF_PRECONDITION_NOT_MET") -> None:
        super().__init__(
            code=code,
            message=message,
            error_class="business_rule",
            retryable=False,
            http_status=400,
        )


class ConflictError(ApiError):
    def __init__(
        self,
        message: str,
        *,
        code: str = "CONFLICT",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            error_class="conflict",
            retryable=False,
            http_status=409,
            details=details,
        )


class NotFoundError(ApiError):
    def __init__(self, message: str, *, code: str = "REQ_NOT_FOUND") -> None:
        super().__init__(
            code=code,
            message=message,
            error_class="validation",
            retryable=False,
            http_status=404,
        )


class ValidationError(ApiError):
    def __init__(self, message: str, *, code: str = "REQ_VALIDATION_FAILED") -> None:
        super().__init__(
            code=code,
            message=message,
            error_class="validation",
            retryable=False,
            http_status=400,
        )
