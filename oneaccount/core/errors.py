"""Domain errors and their HTTP rendering."""

from fastapi import Request, status
from fastapi.responses import JSONResponse


class OneAccountError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "SERVER_ERROR"
    message: str = "Something went wrong"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidCredentialsError(OneAccountError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_CREDENTIALS_ERROR"
    message = "The credentials provided were incorrect"


class AccountDeactivatedError(OneAccountError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN_ERROR"
    message = "Account is deactivated."


class InvalidTokenError(OneAccountError):
    """Malformed token, unknown hash, or expired attempt. Deliberately indistinguishable."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "INVALID_MFA_ATTEMPT_TOKEN_ERROR"
    message = "Invalid MFA Attempt Token"


class AttemptNotFoundError(OneAccountError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "RESOURCE_NOT_FOUND_ERROR"
    message = "Unable to find MFA attempt record from token"


class NoActiveStepError(OneAccountError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "BAD_REQUEST_ERROR"
    message = "All MFA steps have already been completed"


class StepNotActiveError(OneAccountError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "BAD_REQUEST_ERROR"
    message = "Current MFA step does not support this operation"


class CodeMismatchError(OneAccountError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "INVALID_MFA_CODE_ERROR"
    message = "Invalid MFA Code provided"


class BackupCodeMismatchError(OneAccountError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "INVALID_MFA_BACKUP_CODE_ERROR"
    message = "Invalid MFA Backup Code provided"


class AlreadyEnrolledError(OneAccountError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN_ERROR"
    message = "QR Code generation is only available once during MFA"


class MfaManagementDisabledError(OneAccountError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN_ERROR"
    message = "MFA configuration is disabled"


class InvalidSettingsError(OneAccountError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_ERROR"
    message = "Invalid settings"


class UnsupportedAuthTypeError(OneAccountError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_ERROR"
    message = "Authentication type is not enabled"


class ResourceNotFoundError(OneAccountError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "RESOURCE_NOT_FOUND_ERROR"
    message = "Resource not found"


class UnsupportedStepError(OneAccountError):
    """The policy references a verification method the registry does not know."""

    message = "MFA step is not supported by this deployment"


class DependencyFailureError(OneAccountError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "DEPENDENCY_ERROR"
    message = "A downstream dependency failed"


async def oneaccount_error_handler(request: Request, exc: OneAccountError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error_code": exc.error_code, "message": exc.message},
    )
