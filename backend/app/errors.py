"""Error taxonomy shared by the production engine, the consumption ledger and the API layer."""

import enum


class ErrorCode(str, enum.Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    OVER_CONSUMPTION = "OVER_CONSUMPTION"
    TIMEOUT = "TIMEOUT"
    STORAGE_CLEANUP_FAILED = "STORAGE_CLEANUP_FAILED"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    SERVER_ERROR = "SERVER_ERROR"


HTTP_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.INVALID_PAYLOAD: 400,
    ErrorCode.VALIDATION: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.OVER_CONSUMPTION: 409,
    ErrorCode.FILE_TOO_LARGE: 413,
    ErrorCode.SERVER_ERROR: 500,
}


class LedgerError(Exception):
    """Base class for request-level failures; carries a machine-readable code."""

    code: ErrorCode = ErrorCode.SERVER_ERROR

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code.value)
        self.message = message or self.code.value

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CODE.get(self.code, 500)


class UnauthenticatedError(LedgerError):
    code = ErrorCode.UNAUTHENTICATED


class ForbiddenError(LedgerError):
    code = ErrorCode.FORBIDDEN


class InvalidPayloadError(LedgerError):
    code = ErrorCode.INVALID_PAYLOAD


class ValidationFailedError(LedgerError):
    code = ErrorCode.VALIDATION


class NotFoundError(LedgerError):
    code = ErrorCode.NOT_FOUND


class OverConsumptionError(LedgerError):
    code = ErrorCode.OVER_CONSUMPTION

    def __init__(self, requested: int, remaining: int):
        super().__init__(f"Requested {requested} lines but only {remaining} remain")
        self.requested = requested
        self.remaining = remaining


class FileTooLargeError(LedgerError):
    code = ErrorCode.FILE_TOO_LARGE


class ServerError(LedgerError):
    code = ErrorCode.SERVER_ERROR
