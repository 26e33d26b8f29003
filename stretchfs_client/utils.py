"""Utility functions for the StretchFS client."""

import json
import posixpath
import uuid
from typing import Any, Tuple
from urllib.parse import quote


def file_path_sanitize(path: str) -> str:
    """
    Normalize the leading character of a server-side path.

    A leading '.' is replaced by '/', and a '/' is prepended to anything
    that does not already start with one. Nothing else is touched.

    Example:
        >>> file_path_sanitize("relative/path")
        '/relative/path'
        >>> file_path_sanitize(".hidden/path")
        '/hidden/path'
    """
    if path.startswith("."):
        return "/" + path[1:]
    if not path.startswith("/"):
        return "/" + path
    return path


def folder_path_sanitize(path: str) -> str:
    """Sanitize a folder path and make sure it ends with '/'."""
    path = file_path_sanitize(path)
    if not path.endswith("/"):
        path += "/"
    return path


def split_remote_path(path: str) -> Tuple[str, str]:
    """Split a remote file path into (folder, name); folder ends with '/'."""
    path = file_path_sanitize(path)
    return folder_path_sanitize(posixpath.dirname(path)), posixpath.basename(path)


def static_url(domain: str, content_hash: str, name: str = "file") -> str:
    return f"//{domain}/static/{content_hash}/{quote(name, safe='')}"


def job_content_url(domain: str, port: int, handle: str, file: str) -> str:
    return f"//{domain}:{port}/job/content/download/{handle}/{file}"


def absolute_url(url: str, scheme: str = "https") -> str:
    """Give protocol-relative URLs ('//host/...') an explicit scheme."""
    if url.startswith("//"):
        return f"{scheme}:{url}"
    return url


def generate_request_token() -> str:
    """Random 32 hex character token identifying this client's requests."""
    return uuid.uuid4().hex


def format_payload(payload: Any, max_length: int = 2000) -> str:
    """Return a compact JSON representation, truncated if necessary."""
    try:
        serialized = json.dumps(payload, default=str)
    except TypeError:
        serialized = str(payload)

    if len(serialized) > max_length:
        return serialized[:max_length] + "...(truncated)"
    return serialized


__all__ = [
    "file_path_sanitize",
    "folder_path_sanitize",
    "split_remote_path",
    "static_url",
    "job_content_url",
    "absolute_url",
    "generate_request_token",
    "format_payload",
]
