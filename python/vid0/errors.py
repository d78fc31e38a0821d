"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_INTERNAL_ONLY = "E_INTERNAL_ONLY"
    E_MODEL_REQUIRES_AUTH = "E_MODEL_REQUIRES_AUTH"
    E_MODEL_REQUIRES_KEY = "E_MODEL_REQUIRES_KEY"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_CHAT_NOT_FOUND = "E_CHAT_NOT_FOUND"
    E_PROJECT_NOT_FOUND = "E_PROJECT_NOT_FOUND"
    E_ATTACHMENT_NOT_FOUND = "E_ATTACHMENT_NOT_FOUND"
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"
    E_KEY_NOT_FOUND = "E_KEY_NOT_FOUND"
    E_MODEL_NOT_FOUND = "E_MODEL_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_NAME_INVALID = "E_NAME_INVALID"
    E_MESSAGE_TOO_LONG = "E_MESSAGE_TOO_LONG"
    E_KEY_PROVIDER_INVALID = "E_KEY_PROVIDER_INVALID"
    E_KEY_INVALID_FORMAT = "E_KEY_INVALID_FORMAT"
    E_FILE_TOO_LARGE = "E_FILE_TOO_LARGE"
    E_INVALID_FILE_TYPE = "E_INVALID_FILE_TYPE"

    # Removed endpoints (410)
    E_GONE = "E_GONE"

    # Quota errors (429)
    E_DAILY_LIMIT_REACHED = "E_DAILY_LIMIT_REACHED"
    E_DAILY_FILE_LIMIT_REACHED = "E_DAILY_FILE_LIMIT_REACHED"

    # LLM errors
    E_LLM_NO_KEY = "E_LLM_NO_KEY"  # 400
    E_LLM_INVALID_KEY = "E_LLM_INVALID_KEY"  # 400
    E_LLM_RATE_LIMIT = "E_LLM_RATE_LIMIT"  # 429
    E_LLM_CONTEXT_TOO_LARGE = "E_LLM_CONTEXT_TOO_LARGE"  # 400
    E_LLM_TIMEOUT = "E_LLM_TIMEOUT"  # 504
    E_LLM_PROVIDER_DOWN = "E_LLM_PROVIDER_DOWN"  # 502
    E_MODEL_NOT_AVAILABLE = "E_MODEL_NOT_AVAILABLE"  # 400

    # Server errors
    E_AUTH_UNAVAILABLE = "E_AUTH_UNAVAILABLE"  # 503
    E_USAGE_UNAVAILABLE = "E_USAGE_UNAVAILABLE"  # 503
    E_INTERNAL = "E_INTERNAL"  # 500
    E_SIGN_UPLOAD_FAILED = "E_SIGN_UPLOAD_FAILED"  # 500
    E_STORAGE_ERROR = "E_STORAGE_ERROR"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_INTERNAL_ONLY: 403,
    ApiErrorCode.E_MODEL_REQUIRES_AUTH: 403,
    ApiErrorCode.E_MODEL_REQUIRES_KEY: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_CHAT_NOT_FOUND: 404,
    ApiErrorCode.E_PROJECT_NOT_FOUND: 404,
    ApiErrorCode.E_ATTACHMENT_NOT_FOUND: 404,
    ApiErrorCode.E_USER_NOT_FOUND: 404,
    ApiErrorCode.E_KEY_NOT_FOUND: 404,
    ApiErrorCode.E_MODEL_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_NAME_INVALID: 400,
    ApiErrorCode.E_MESSAGE_TOO_LONG: 400,
    ApiErrorCode.E_KEY_PROVIDER_INVALID: 400,
    ApiErrorCode.E_KEY_INVALID_FORMAT: 400,
    ApiErrorCode.E_FILE_TOO_LARGE: 400,
    ApiErrorCode.E_INVALID_FILE_TYPE: 400,
    ApiErrorCode.E_GONE: 410,
    ApiErrorCode.E_DAILY_LIMIT_REACHED: 429,
    ApiErrorCode.E_DAILY_FILE_LIMIT_REACHED: 429,
    ApiErrorCode.E_LLM_NO_KEY: 400,
    ApiErrorCode.E_LLM_INVALID_KEY: 400,
    ApiErrorCode.E_LLM_RATE_LIMIT: 429,
    ApiErrorCode.E_LLM_CONTEXT_TOO_LARGE: 400,
    ApiErrorCode.E_LLM_TIMEOUT: 504,
    ApiErrorCode.E_LLM_PROVIDER_DOWN: 502,
    ApiErrorCode.E_MODEL_NOT_AVAILABLE: 400,
    ApiErrorCode.E_AUTH_UNAVAILABLE: 503,
    ApiErrorCode.E_USAGE_UNAVAILABLE: 503,
    ApiErrorCode.E_INTERNAL: 500,
    ApiErrorCode.E_SIGN_UPLOAD_FAILED: 500,
    ApiErrorCode.E_STORAGE_ERROR: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Not authorized"
    ):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class UsageLimitError(ApiError):
    """Daily quota exhausted.

    Attributes:
        limit: The quota that was reached.
        is_pro_model: Whether the pro-model quota was the one reached.
    """

    def __init__(self, message: str, limit: int, is_pro_model: bool):
        super().__init__(ApiErrorCode.E_DAILY_LIMIT_REACHED, message)
        self.limit = limit
        self.is_pro_model = is_pro_model


class FileUploadLimitError(ApiError):
    """Daily attachment quota exhausted."""

    def __init__(self, message: str = "Daily file upload limit reached."):
        super().__init__(ApiErrorCode.E_DAILY_FILE_LIMIT_REACHED, message)


class GoneError(ApiError):
    """Endpoint has been retired.

    Attributes:
        hint: Where callers should go instead.
    """

    def __init__(self, message: str, hint: str):
        super().__init__(ApiErrorCode.E_GONE, message)
        self.hint = hint
