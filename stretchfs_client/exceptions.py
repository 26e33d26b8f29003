"""Custom exceptions for the StretchFS client."""

from typing import Optional


class StretchFSError(Exception):
    """Base exception for all StretchFS client errors."""
    pass


class AuthenticationError(StretchFSError):
    """Credentials are missing or were rejected."""
    pass


class SessionError(AuthenticationError):
    """Login or logout response did not contain a session."""

    def __init__(self, message: str = "Login failed, no session"):
        super().__init__(message)


class NetworkError(StretchFSError):
    """Network/connection error."""
    pass


class APIError(NetworkError):
    """Server answered with a non-2xx status."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Network error: API error {status_code}: {detail}")


class ResponseDecodeError(NetworkError):
    """Response body could not be decoded as JSON."""

    def __init__(self, status_code: int, body: str, cause: Optional[Exception] = None):
        self.status_code = status_code
        self.body = body
        message = f"Network error: invalid JSON response (status {status_code})"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class UploadError(StretchFSError):
    """Error during file upload."""
    pass


class LocalFileNotFoundError(UploadError, FileNotFoundError):
    """Local file given for upload does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"File not found: {path}")


class DownloadError(StretchFSError):
    """Error during file download."""
    pass
