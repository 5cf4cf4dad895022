# ==========================
# 📁 sdk/exceptions.py
# ==========================
from typing import Optional


class BranchDeploySDKError(Exception):
    """Base exception for every external client (VCS, lookup, job, infra, deploy)."""
    def __init__(self, message: str, status_code: Optional[int] = None, error_body: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_body = error_body

    def __str__(self):
        return f"{self.message} (Status: {self.status_code}, Body: {self.error_body if self.error_body else 'N/A'})"


class APIError(BranchDeploySDKError):
    """Raised for general API and transport errors."""
    pass


class AuthenticationError(BranchDeploySDKError):
    """Raised for authentication or authorization failures."""
    def __init__(self, message: str = "Authentication failed. Check API token or credentials.", status_code: int = 401, error_body: Optional[str] = None):
        super().__init__(message, status_code, error_body)


class NotFoundError(BranchDeploySDKError):
    """Raised when a resource is not found (404)."""
    def __init__(self, message: str = "Resource not found.", status_code: int = 404, error_body: Optional[str] = None):
        super().__init__(message, status_code, error_body)


class RequestTimeoutError(APIError):
    """Raised for request timeouts."""
    def __init__(self, message: str = "Request timed out.", status_code: int = 408, error_body: Optional[str] = None):
        super().__init__(message, status_code, error_body)


class StoreError(BranchDeploySDKError):
    """Raised when the shared config store cannot be read or written."""
    pass


class MalformedRecordError(StoreError):
    """Raised when a stored record exists but its content cannot be decoded."""
    pass


class CommandError(BranchDeploySDKError):
    """Raised when a local command (git) exits non-zero."""
    def __init__(self, message: str, exit_code: Optional[int] = None, stderr: Optional[str] = None):
        super().__init__(message, status_code=exit_code, error_body=stderr)
        self.exit_code = exit_code


def is_transient(error: BaseException) -> bool:
    """True for errors worth retrying: timeouts, transport failures, 429 and 5xx."""
    if isinstance(error, RequestTimeoutError):
        return True
    if isinstance(error, (AuthenticationError, NotFoundError)):
        return False
    if isinstance(error, APIError):
        return error.status_code is None or error.status_code == 429 or error.status_code >= 500
    return False
