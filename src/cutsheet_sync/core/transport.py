import base64
import binascii
import json
import logging
import threading
from typing import Protocol

import requests

from ..config import Config
from ..errors import (
    NotFoundError,
    TransportAuthRequiredError,
    TransportError,
    TransportTimeoutError,
)

logger = logging.getLogger(__name__)

_AUTH_STATUSES = (401, 403)


class BlobTransport(Protocol):
    """Move raw document bytes to and from the remote store.

    Implementations raise ``TransportAuthRequiredError`` when the remote
    rejects credentials, ``NotFoundError`` when a URL does not exist,
    ``TransportTimeoutError`` when a request exceeds its time budget, and
    ``TransportError`` for anything else.
    """

    def upload(
        self,
        data: bytes,
        filename: str,
        content_type: str = "application/pdf",
    ) -> str: ...

    def download(self, url: str) -> bytes: ...


def decode_upload_token(token: str) -> dict[str, str]:
    """Decode an UploadThing-style token.

    The token is base64-encoded JSON carrying ``apiKey`` and ``appId``.
    Returns an empty dict for an empty or undecodable token.
    """
    if not token:
        return {}
    try:
        data = json.loads(base64.b64decode(token).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        logger.error("Could not decode upload token: %s", exc)
        return {}
    if not isinstance(data, dict):
        return {}
    return {
        k: str(v) for k, v in data.items() if k in ("apiKey", "appId") and v
    }


class HttpBlobTransport:
    """HTTP transport for an UploadThing-compatible file service.

    Uploads are multipart POSTs to ``config.upload_url`` answered with
    ``{"data": {"url": ...}}`` or ``{"error": ...}``; downloads are plain
    GETs.  Each thread gets its own ``requests.Session`` so the
    reconciler's worker pool can share one transport.
    """

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        credentials = decode_upload_token(self.config.upload_token)
        api_key = credentials.get("apiKey") or self.config.api_key
        app_id = credentials.get("appId") or self.config.app_id
        if api_key:
            session.headers["X-API-Key"] = api_key
        if app_id:
            session.headers["X-App-Id"] = app_id
        session.verify = not self.config.insecure
        return session

    @property
    def _timeout(self) -> tuple[float, float]:
        return (min(10.0, self.config.timeout), self.config.timeout)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Issue a request and map failures onto the transport errors."""
        try:
            response = self._get_session().request(
                method, url, timeout=self._timeout, **kwargs
            )
        except requests.Timeout as exc:
            raise TransportTimeoutError(
                f"{method} {url} timed out after {self.config.timeout}s"
            ) from exc
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        if response.status_code in _AUTH_STATUSES:
            raise TransportAuthRequiredError(url, response.status_code)
        if response.status_code == 404:
            raise NotFoundError(f"Remote object not found: {url}", target=url)
        if not response.ok:
            raise TransportError(
                f"{method} {url} failed with status {response.status_code}"
            )
        return response

    def upload(
        self,
        data: bytes,
        filename: str,
        content_type: str = "application/pdf",
    ) -> str:
        """Upload *data* and return the URL it is served from."""
        response = self._request(
            "POST",
            self.config.upload_url,
            files={"file": (filename, data, content_type)},
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(
                f"Upload of {filename} returned a non-JSON response"
            ) from exc

        url = (payload.get("data") or {}).get("url") if isinstance(payload, dict) else None
        if not url:
            error = payload.get("error") if isinstance(payload, dict) else None
            raise TransportError(
                error or f"Invalid response uploading {filename}"
            )
        logger.debug("Uploaded %s (%d bytes) to %s", filename, len(data), url)
        return url

    def download(self, url: str) -> bytes:
        """Fetch the bytes served at *url*."""
        response = self._request("GET", url)
        logger.debug("Downloaded %d bytes from %s", len(response.content), url)
        return response.content
