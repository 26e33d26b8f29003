"""Synchronous StretchFS client."""

import io
import json
import logging
import os
import posixpath
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Any, BinaryIO, Dict, Iterator, Optional, Union

import httpx

from .config import (
    DEFAULT_DOMAIN,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    ClientConfig,
    ClientSettings,
)
from .exceptions import (
    APIError,
    AuthenticationError,
    DownloadError,
    LocalFileNotFoundError,
    NetworkError,
    ResponseDecodeError,
    SessionError,
    UploadError,
)
from .models import Session, dump_description
from .utils import (
    absolute_url,
    file_path_sanitize,
    folder_path_sanitize,
    format_payload,
    generate_request_token,
    job_content_url,
    split_remote_path,
    static_url,
)

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-STRETCHFS-Token"
DEFAULT_DOWNLOAD_LIFE = 3600
DEFAULT_PURCHASE_LIFE = 7200
DEFAULT_JOB_CATEGORY = "resource"


class BaseStretchFSClient:
    """
    Configuration, token handling and request/response plumbing shared by
    the synchronous and asynchronous clients.
    """

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        token: Optional[str] = None,
        domain: str = DEFAULT_DOMAIN,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the client configuration.

        Args:
            username: Account name used by generate_token()
            password: Account password used by generate_token()
            token: Existing session token; skips the need to log in
            domain: Server host name
            port: Server port
            timeout: Request timeout in seconds

        Raises:
            AuthenticationError: If neither a token nor username and password are given
        """
        if not token and not (username and password):
            raise AuthenticationError("Missing authentication credentials")

        self.config = ClientConfig(
            username=username,
            password=password,
            token=token,
            domain=domain,
            port=port,
            timeout=timeout,
        )
        self._token = token
        self._token_lock = Lock()
        self.request_token = generate_request_token()

    @classmethod
    def from_settings(cls, settings: Optional[ClientSettings] = None, **kwargs):
        """Build a client from STRETCHFS_* settings; kwargs override them."""
        settings = settings or ClientSettings()
        options = settings.model_dump()
        options.update({key: value for key, value in kwargs.items() if value is not None})
        return cls(**options)

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def token(self) -> Optional[str]:
        """Session token currently sent with each request."""
        with self._token_lock:
            return self._token

    def _set_token(self, token: Optional[str]) -> None:
        with self._token_lock:
            self._token = token

    def _headers(self, authenticated: bool = True) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self.token
        if authenticated and token:
            headers[TOKEN_HEADER] = token
        return headers

    def _log_request(self, method: str, path: str, kwargs: Dict[str, Any]) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        if kwargs.get("json") is not None:
            logger.debug(f"{method} {path} payload={format_payload(kwargs['json'])}")
        elif kwargs.get("params"):
            logger.debug(f"{method} {path} params={format_payload(kwargs['params'])}")
        else:
            logger.debug(f"{method} {path}")

    @staticmethod
    def _network_error(method: str, path: str, exc: Exception) -> NetworkError:
        logger.warning(f"{method} {path} failed: {exc}")
        return NetworkError(f"Network error: {exc}")

    @staticmethod
    def _check_status(method: str, path: str, response: httpx.Response) -> None:
        """Raise APIError for non-2xx responses; the body must already be read."""
        if response.is_success:
            return

        try:
            body = response.json()
            if isinstance(body, dict):
                error_detail = body.get("message") or body.get("error") or response.text
            else:
                error_detail = response.text
        except ValueError:
            error_detail = response.text

        logger.warning(f"{method} {path} returned {response.status_code}: {error_detail}")
        raise APIError(response.status_code, error_detail)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        """Decode a JSON body; an empty body decodes to {}."""
        if not response.content.strip():
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ResponseDecodeError(response.status_code, response.text, e) from e

    def _login_payload(self) -> Dict[str, str]:
        if not self.config.has_credentials:
            raise AuthenticationError("Username and password are required to generate a token")
        return {"username": self.config.username, "password": self.config.password}

    @staticmethod
    def _session_from(body: Any) -> Session:
        if not isinstance(body, dict) or body.get("session") is None:
            raise SessionError()
        session = body["session"]
        if isinstance(session, dict):
            return Session.model_validate(session)
        return Session()

    def _download_params(self, path: str, life: int) -> Dict[str, Any]:
        # `life` is sent in addition to path and token so the server can bound the URL lifetime.
        return {
            "path": file_path_sanitize(path),
            "token": self.request_token,
            "life": life,
        }

    @staticmethod
    def _download_target(info: Any) -> str:
        if not isinstance(info, dict) or not info.get("url"):
            raise DownloadError("Missing URL in the download information")
        return absolute_url(info["url"])

    @staticmethod
    def _upload_request(stream: BinaryIO, name: str, folder_path: str) -> Dict[str, Any]:
        if not hasattr(stream, "read"):
            raise UploadError("Upload source is not a readable stream")
        return {
            "files": {"file": (name, stream)},
            "params": {"path": folder_path_sanitize(folder_path)},
        }

    @staticmethod
    def _job_create_payload(description: Any, priority: Optional[int], category: str) -> Dict[str, Any]:
        # The server expects the description as a JSON string, not a nested object.
        return {
            "description": json.dumps(dump_description(description), separators=(",", ":")),
            "priority": priority,
            "category": category,
        }

    @staticmethod
    def _exists_flag(body: Any) -> bool:
        if isinstance(body, dict) and body and "exists" in body:
            return bool(body["exists"])
        return False

    @staticmethod
    def _local_target(path: str, destination: Union[Path, str]) -> Path:
        raw = os.fspath(destination)
        separators = tuple(sep for sep in (os.sep, os.altsep, "/") if sep)
        destination = Path(destination)
        if destination.is_dir() or raw.endswith(separators):
            destination = destination / posixpath.basename(file_path_sanitize(path))
        return destination

    @staticmethod
    def _partial_path(local_path: Path) -> Path:
        """Sibling file a download is written to before replacing the target."""
        return local_path.with_name(local_path.name + ".part")

    # ============================================================================
    # Local URL helpers
    # ============================================================================

    def url_static(self, content_hash: str, name: str = "file") -> str:
        """
        Build the public static URL for a piece of content. No request is made.

        Example:
            >>> client.url_static("abc123", "my file.txt")
            '//vidcache.net/static/abc123/my%20file.txt'
        """
        return static_url(self.config.domain, content_hash, name)

    def job_content_url(self, handle: str, file: str) -> str:
        """Build the download URL for a file in a job's content directory."""
        return job_content_url(self.config.domain, self.config.port, handle, file)


class StretchFSClient(BaseStretchFSClient):
    """
    Synchronous client for a StretchFS server.

    Example:
        >>> client = StretchFSClient(username="alice", password="secret")
        >>> client.generate_token()
        >>> client.folder_create("/reports")
        >>> client.file_upload("summary.pdf", "/reports/")
        >>> job = client.job_create(description, priority=10)
    """

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        token: Optional[str] = None,
        domain: str = DEFAULT_DOMAIN,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(
            username=username,
            password=password,
            token=token,
            domain=domain,
            port=port,
            timeout=timeout,
        )
        self.client = httpx.Client(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            transport=transport,
        )

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, *args):
        """Context manager exit."""
        self.close()

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def _request(self, method: str, path: str, authenticated: bool = True, **kwargs) -> httpx.Response:
        """
        Make an HTTP request with error handling.

        Args:
            method: HTTP method
            path: Endpoint path relative to the server root
            authenticated: Send the session token header
            **kwargs: Additional arguments to pass to httpx

        Returns:
            HTTP response

        Raises:
            APIError: If the server answers with a non-2xx status
            NetworkError: If the request fails in transport
        """
        self._log_request(method, path, kwargs)

        try:
            response = self.client.request(
                method, path, headers=self._headers(authenticated), **kwargs
            )
        except httpx.RequestError as e:
            raise self._network_error(method, path, e) from e

        self._check_status(method, path, response)
        return response

    def _post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        response = self._request("POST", path, json=payload)
        return self._decode(response)

    def _get(self, path: str, params: Dict[str, Any]) -> Any:
        response = self._request("GET", path, params=params)
        return self._decode(response)

    # ============================================================================
    # Authentication
    # ============================================================================

    def generate_token(self) -> str:
        """
        Log in with the configured username and password.

        The session token from the response becomes the active token.

        Returns:
            The new session token

        Raises:
            AuthenticationError: If no username/password were configured
            SessionError: If the response carries no session
            NetworkError: If the request fails
        """
        payload = self._login_payload()
        response = self._request("POST", "user/login", authenticated=False, json=payload)
        session = self._session_from(self._decode(response))
        if not session.token:
            raise SessionError("Login failed, session has no token")

        self._set_token(session.token)
        logger.info(f"Obtained session token for {self.config.username}")
        return session.token

    def destroy_token(self, token: Optional[str] = None) -> bool:
        """
        Log out the current session.

        The request is authenticated with the stored token; ``token`` is
        accepted for symmetry with generate_token() but not sent.
        """
        response = self._request("POST", "user/logout")
        self._session_from(self._decode(response))
        self._set_token(None)
        logger.info("Session token destroyed")
        return True

    # ============================================================================
    # Folders
    # ============================================================================

    def folder_create(self, path: str) -> Any:
        return self._post("file/folderCreate", {"path": file_path_sanitize(path)})

    def folder_delete(self, path: str) -> Any:
        return self._post("file/remove", {"path": file_path_sanitize(path)})

    def file_list(self, path: str) -> Any:
        """List the entries of a folder."""
        return self._get("file/list", {"path": file_path_sanitize(path)})

    # ============================================================================
    # Files
    # ============================================================================

    def file_upload(self, local_path: Union[Path, str], folder_path: str = "/") -> Any:
        """
        Upload a local file into a remote folder.

        Args:
            local_path: File on the local disk
            folder_path: Remote folder; a trailing '/' is added when missing

        Raises:
            LocalFileNotFoundError: If the local file does not exist
            NetworkError: If the upload request fails
        """
        local_path = Path(local_path)
        if not local_path.is_file():
            raise LocalFileNotFoundError(local_path)

        with open(local_path, "rb") as handle:
            return self.file_upload_from_resource(handle, local_path.name, folder_path)

    def file_upload_from_resource(self, stream: BinaryIO, name: str, folder_path: str = "/") -> Any:
        """Upload the contents of an open binary stream as ``name``. The stream is left open."""
        request = self._upload_request(stream, name, folder_path)
        response = self._request("POST", "file/upload", **request)
        return self._decode(response)

    def file_upload_from_string(self, path: str, contents: Union[str, bytes]) -> Any:
        """Upload in-memory contents to a full remote file path."""
        folder, name = split_remote_path(path)
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        return self.file_upload_from_resource(io.BytesIO(contents), name, folder)

    def file_download_url(self, path: str, life: int = DEFAULT_DOWNLOAD_LIFE) -> Any:
        """Request a temporary download URL for a file."""
        return self._get("file/download", self._download_params(path, life))

    @contextmanager
    def file_download_stream(
        self,
        path: str,
        life: int = DEFAULT_DOWNLOAD_LIFE,
        chunk_size: Optional[int] = None,
    ) -> Iterator[Iterator[bytes]]:
        """
        Stream a file's contents.

        Fetches a temporary URL first, then streams from it. The response is
        closed when the block exits.

        Example:
            >>> with client.file_download_stream("/reports/summary.pdf") as chunks:
            ...     for chunk in chunks:
            ...         out.write(chunk)

        Raises:
            DownloadError: If the URL envelope has no ``url``
            NetworkError: If either request fails
        """
        url = self._download_target(self.file_download_url(path, life))

        try:
            response = self.client.send(self.client.build_request("GET", url), stream=True)
        except httpx.RequestError as e:
            raise self._network_error("GET", url, e) from e

        try:
            if not response.is_success:
                response.read()
                self._check_status("GET", url, response)
            yield self._iter_chunks(response, url, chunk_size)
        finally:
            response.close()

    def _iter_chunks(self, response: httpx.Response, url: str, chunk_size: Optional[int]) -> Iterator[bytes]:
        try:
            yield from response.iter_bytes(chunk_size)
        except httpx.RequestError as e:
            raise self._network_error("GET", url, e) from e

    def file_download(self, path: str) -> bytes:
        """Download a file into memory."""
        with self.file_download_stream(path) as chunks:
            return b"".join(chunks)

    def file_download_to(
        self,
        path: str,
        destination: Union[Path, str],
        overwrite: bool = False,
    ) -> Path:
        """
        Download a file to the local disk.

        Args:
            path: Remote file path
            destination: Local file, or a directory to place it in (an existing
                directory, or any path ending with a separator)
            overwrite: Replace an existing local file

        Returns:
            Path to the local file

        The data is written to a ``.part`` sibling first; an existing file is
        only replaced once the download has completed.
        """
        local_path = self._local_target(path, destination)
        if local_path.exists() and not overwrite:
            logger.debug(f"Skipping existing file {local_path}")
            return local_path

        local_path.parent.mkdir(parents=True, exist_ok=True)
        partial_path = self._partial_path(local_path)
        logger.debug(f"Downloading {path} -> {local_path}")

        try:
            with self.file_download_stream(path) as chunks, open(partial_path, "wb") as handle:
                for chunk in chunks:
                    handle.write(chunk)
        except BaseException:
            partial_path.unlink(missing_ok=True)
            raise

        partial_path.replace(local_path)
        return local_path

    def file_detail(self, path: str) -> Any:
        return self._get("file/detail", {"path": file_path_sanitize(path)})

    def file_delete(self, path: str) -> Any:
        return self._post("file/remove", {"path": file_path_sanitize(path)})

    def file_link(self, handle: str, content_hash: str, path: str = "/") -> Any:
        """Link content produced by a finished job into the file tree."""
        return self._post(
            "file/link",
            {"handle": handle, "hash": content_hash, "path": file_path_sanitize(path)},
        )

    # ============================================================================
    # Content
    # ============================================================================

    def content_detail(self, content_hash: str) -> Any:
        return self._post("content/detail", {"hash": content_hash})

    def content_exists(self, content_hash: str) -> Any:
        return self._post("content/exists", {"hash": content_hash})

    def content_retrieve(self, request: Dict[str, Any], extension: str) -> Any:
        """Ask the server to fetch remote content described by ``request``."""
        return self._post("content/retrieve", {"request": request, "extension": extension})

    def content_purchase(self, content_hash: str, life: int = DEFAULT_PURCHASE_LIFE) -> Any:
        """Request a temporary access grant for content; the result includes its token."""
        return self._post(
            "content/purchase",
            {"hash": content_hash, "token": self.request_token, "life": life},
        )

    def content_purchase_remove(self, purchase_token: str) -> Any:
        return self._post("content/purchase/remove", {"purchaseToken": purchase_token})

    # ============================================================================
    # Jobs
    # ============================================================================

    def job_create(
        self,
        description: Any,
        priority: Optional[int] = None,
        category: str = DEFAULT_JOB_CATEGORY,
    ) -> Any:
        """
        Create a job.

        Args:
            description: Job description as a dict or JobDescription
            priority: Optional job priority
            category: Job category

        Returns:
            Decoded response, including the new job handle

        Example:
            >>> job = client.job_create({
            ...     "callback": {"request": {"method": "POST", "url": "https://example.com/hook"}},
            ...     "resource": [{"name": "a.mp4", "request": {"url": "https://example.com/a.mp4"}}],
            ... }, priority=12, category="ingest")
        """
        return self._post("job/create", self._job_create_payload(description, priority, category))

    def job_detail(self, handle: str) -> Any:
        return self._post("job/detail", {"handle": handle})

    def job_update(self, handle: str, changes: Dict[str, Any]) -> Any:
        return self._post("job/update", {"handle": handle, "changes": changes})

    def job_start(self, handle: str) -> Any:
        return self._post("job/start", {"handle": handle})

    def job_abort(self, handle: str) -> Any:
        return self._post("job/abort", {"handle": handle})

    def job_retry(self, handle: str) -> Any:
        return self._post("job/retry", {"handle": handle})

    def job_remove(self, handle: str) -> Any:
        return self._post("job/remove", {"handle": handle})

    def job_content_exists(self, handle: str, file: str) -> bool:
        """Check whether a file exists in a job's content directory."""
        body = self._post("job/content/exists", {"handle": handle, "file": file})
        return self._exists_flag(body)
