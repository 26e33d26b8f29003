"""Asynchronous StretchFS client."""

import io
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, BinaryIO, Dict, Optional, Union

import httpx

from .client import (
    DEFAULT_DOWNLOAD_LIFE,
    DEFAULT_JOB_CATEGORY,
    DEFAULT_PURCHASE_LIFE,
    BaseStretchFSClient,
)
from .config import DEFAULT_DOMAIN, DEFAULT_PORT, DEFAULT_TIMEOUT
from .exceptions import LocalFileNotFoundError, SessionError
from .utils import file_path_sanitize, split_remote_path

logger = logging.getLogger(__name__)


class AsyncStretchFSClient(BaseStretchFSClient):
    """
    Asynchronous client for a StretchFS server.

    Use this in async applications; the calls mirror StretchFSClient.

    Example:
        >>> async with AsyncStretchFSClient(token="...") as client:
        ...     listing = await client.file_list("/reports")
        ...     job = await client.job_create(description)
    """

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        token: Optional[str] = None,
        domain: str = DEFAULT_DOMAIN,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            username=username,
            password=password,
            token=token,
            domain=domain,
            port=port,
            timeout=timeout,
        )
        self.client = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            transport=transport,
        )

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def _request(self, method: str, path: str, authenticated: bool = True, **kwargs) -> httpx.Response:
        """Make an HTTP request with error handling."""
        self._log_request(method, path, kwargs)

        try:
            response = await self.client.request(
                method, path, headers=self._headers(authenticated), **kwargs
            )
        except httpx.RequestError as e:
            raise self._network_error(method, path, e) from e

        self._check_status(method, path, response)
        return response

    async def _post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._request("POST", path, json=payload)
        return self._decode(response)

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        response = await self._request("GET", path, params=params)
        return self._decode(response)

    # ============================================================================
    # Authentication
    # ============================================================================

    async def generate_token(self) -> str:
        """Log in with the configured username and password."""
        payload = self._login_payload()
        response = await self._request("POST", "user/login", authenticated=False, json=payload)
        session = self._session_from(self._decode(response))
        if not session.token:
            raise SessionError("Login failed, session has no token")

        self._set_token(session.token)
        logger.info(f"Obtained session token for {self.config.username}")
        return session.token

    async def destroy_token(self, token: Optional[str] = None) -> bool:
        """Log out the current session."""
        response = await self._request("POST", "user/logout")
        self._session_from(self._decode(response))
        self._set_token(None)
        logger.info("Session token destroyed")
        return True

    # ============================================================================
    # Folders
    # ============================================================================

    async def folder_create(self, path: str) -> Any:
        return await self._post("file/folderCreate", {"path": file_path_sanitize(path)})

    async def folder_delete(self, path: str) -> Any:
        return await self._post("file/remove", {"path": file_path_sanitize(path)})

    async def file_list(self, path: str) -> Any:
        return await self._get("file/list", {"path": file_path_sanitize(path)})

    # ============================================================================
    # Files
    # ============================================================================

    async def file_upload(self, local_path: Union[Path, str], folder_path: str = "/") -> Any:
        """Upload a local file into a remote folder."""
        local_path = Path(local_path)
        if not local_path.is_file():
            raise LocalFileNotFoundError(local_path)

        with open(local_path, "rb") as handle:
            return await self.file_upload_from_resource(handle, local_path.name, folder_path)

    async def file_upload_from_resource(self, stream: BinaryIO, name: str, folder_path: str = "/") -> Any:
        request = self._upload_request(stream, name, folder_path)
        response = await self._request("POST", "file/upload", **request)
        return self._decode(response)

    async def file_upload_from_string(self, path: str, contents: Union[str, bytes]) -> Any:
        folder, name = split_remote_path(path)
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        return await self.file_upload_from_resource(io.BytesIO(contents), name, folder)

    async def file_download_url(self, path: str, life: int = DEFAULT_DOWNLOAD_LIFE) -> Any:
        return await self._get("file/download", self._download_params(path, life))

    @asynccontextmanager
    async def file_download_stream(
        self,
        path: str,
        life: int = DEFAULT_DOWNLOAD_LIFE,
        chunk_size: Optional[int] = None,
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """Stream a file's contents from its temporary download URL."""
        url = self._download_target(await self.file_download_url(path, life))

        try:
            response = await self.client.send(self.client.build_request("GET", url), stream=True)
        except httpx.RequestError as e:
            raise self._network_error("GET", url, e) from e

        try:
            if not response.is_success:
                await response.aread()
                self._check_status("GET", url, response)
            yield self._iter_chunks(response, url, chunk_size)
        finally:
            await response.aclose()

    async def _iter_chunks(
        self, response: httpx.Response, url: str, chunk_size: Optional[int]
    ) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes(chunk_size):
                yield chunk
        except httpx.RequestError as e:
            raise self._network_error("GET", url, e) from e

    async def file_download(self, path: str) -> bytes:
        async with self.file_download_stream(path) as chunks:
            return b"".join([chunk async for chunk in chunks])

    async def file_download_to(
        self,
        path: str,
        destination: Union[Path, str],
        overwrite: bool = False,
    ) -> Path:
        """Download a file to the local disk."""
        local_path = self._local_target(path, destination)
        if local_path.exists() and not overwrite:
            logger.debug(f"Skipping existing file {local_path}")
            return local_path

        local_path.parent.mkdir(parents=True, exist_ok=True)
        partial_path = self._partial_path(local_path)
        logger.debug(f"Downloading {path} -> {local_path}")

        try:
            async with self.file_download_stream(path) as chunks:
                with open(partial_path, "wb") as handle:
                    async for chunk in chunks:
                        handle.write(chunk)
        except BaseException:
            partial_path.unlink(missing_ok=True)
            raise

        partial_path.replace(local_path)
        return local_path

    async def file_detail(self, path: str) -> Any:
        return await self._get("file/detail", {"path": file_path_sanitize(path)})

    async def file_delete(self, path: str) -> Any:
        return await self._post("file/remove", {"path": file_path_sanitize(path)})

    async def file_link(self, handle: str, content_hash: str, path: str = "/") -> Any:
        return await self._post(
            "file/link",
            {"handle": handle, "hash": content_hash, "path": file_path_sanitize(path)},
        )

    # ============================================================================
    # Content
    # ============================================================================

    async def content_detail(self, content_hash: str) -> Any:
        return await self._post("content/detail", {"hash": content_hash})

    async def content_exists(self, content_hash: str) -> Any:
        return await self._post("content/exists", {"hash": content_hash})

    async def content_retrieve(self, request: Dict[str, Any], extension: str) -> Any:
        return await self._post("content/retrieve", {"request": request, "extension": extension})

    async def content_purchase(self, content_hash: str, life: int = DEFAULT_PURCHASE_LIFE) -> Any:
        return await self._post(
            "content/purchase",
            {"hash": content_hash, "token": self.request_token, "life": life},
        )

    async def content_purchase_remove(self, purchase_token: str) -> Any:
        return await self._post("content/purchase/remove", {"purchaseToken": purchase_token})

    # ============================================================================
    # Jobs
    # ============================================================================

    async def job_create(
        self,
        description: Any,
        priority: Optional[int] = None,
        category: str = DEFAULT_JOB_CATEGORY,
    ) -> Any:
        return await self._post(
            "job/create", self._job_create_payload(description, priority, category)
        )

    async def job_detail(self, handle: str) -> Any:
        return await self._post("job/detail", {"handle": handle})

    async def job_update(self, handle: str, changes: Dict[str, Any]) -> Any:
        return await self._post("job/update", {"handle": handle, "changes": changes})

    async def job_start(self, handle: str) -> Any:
        return await self._post("job/start", {"handle": handle})

    async def job_abort(self, handle: str) -> Any:
        return await self._post("job/abort", {"handle": handle})

    async def job_retry(self, handle: str) -> Any:
        return await self._post("job/retry", {"handle": handle})

    async def job_remove(self, handle: str) -> Any:
        return await self._post("job/remove", {"handle": handle})

    async def job_content_exists(self, handle: str, file: str) -> bool:
        body = await self._post("job/content/exists", {"handle": handle, "file": file})
        return self._exists_flag(body)
