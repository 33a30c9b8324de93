from __future__ import annotations


class ApiError(Exception):
    def __init__(
        self,
        *,
        code: str,
        message: str,
        error_class: str,
        retryable: bool,
        http_status: int,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.error_class = error_class
        self.retryable = retryable
        self.http_status = http_status
        self.field = field


def validation_error(message: str, *, field: str | None = None) -> ApiError:
    return ApiError(
        code="VALIDATION_ERROR",
        message=message,
        error_class="validation",
        retryable=False,
        http_status=422,
        field=field,
    )


def forbidden(message: str) -> ApiError:
    return ApiError(
        code="FORBIDDEN",
        message=message,
        error_class="security_sensitive",
        retryable=False,
        http_status=403,
    )


def not_owner(message: str = "achievement belongs to another student") -> ApiError:
    return ApiError(
        code="ACHIEVEMENT_NOT_OWNER",
        message=message,
        error_class="security_sensitive",
        retryable=False,
        http_status=403,
    )


def not_found(message: str = "achievement not found") -> ApiError:
    return ApiError(
        code="ACHIEVEMENT_NOT_FOUND",
        message=message,
        error_class="validation",
        retryable=False,
        http_status=404,
    )


def invalid_state(message: str) -> ApiError:
    return ApiError(
        code="WF_STATE_TRANSITION_INVALID",
        message=message,
        error_class="business_rule",
        retryable=False,
        http_status=409,
    )


def conflict(message: str) -> ApiError:
    return ApiError(
        code="CONFLICT",
        message=message,
        error_class="business_rule",
        retryable=False,
        http_status=409,
    )


def corrupt(message: str) -> ApiError:
    return ApiError(
        code="DETAIL_REF_CORRUPT",
        message=message,
        error_class="permanent",
        retryable=False,
        http_status=500,
    )


def store_timeout(message: str) -> ApiError:
    return ApiError(
        code="STORE_TIMEOUT",
        message=message,
        error_class="transient",
        retryable=True,
        http_status=504,
    )


def internal_failure(message: str) -> ApiError:
    return ApiError(
        code="INTERNAL_FAILURE",
        message=message,
        error_class="availability",
        retryable=True,
        http_status=500,
    )
