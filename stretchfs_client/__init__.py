"""StretchFS Client - Python client library for StretchFS servers."""

from .client import StretchFSClient
from .async_client import AsyncStretchFSClient
from .config import ClientConfig, ClientSettings
from .models import (
    Session,
    RequestSpec,
    JobCallback,
    JobResource,
    JobDescription,
)
from .exceptions import (
    StretchFSError,
    AuthenticationError,
    SessionError,
    NetworkError,
    APIError,
    ResponseDecodeError,
    UploadError,
    LocalFileNotFoundError,
    DownloadError,
)
from .utils import file_path_sanitize

__version__ = "1.0.0"

__all__ = [
    # Clients
    "StretchFSClient",
    "AsyncStretchFSClient",
    # Configuration
    "ClientConfig",
    "ClientSettings",
    # Models
    "Session",
    "RequestSpec",
    "JobCallback",
    "JobResource",
    "JobDescription",
    # Exceptions
    "StretchFSError",
    "AuthenticationError",
    "SessionError",
    "NetworkError",
    "APIError",
    "ResponseDecodeError",
    "UploadError",
    "LocalFileNotFoundError",
    "DownloadError",
    # Utilities
    "file_path_sanitize",
]
