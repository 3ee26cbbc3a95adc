"""Where rendered QR PNGs are kept.

Two backends share the ``QrImageStore`` interface:

- ``GitHubContentsStore`` commits files to a repository through the GitHub
  Contents API (one commit per put/delete).
- ``LocalDirStore`` writes them to a directory on the server.

Paths are always relative, e.g. ``qr/qr_12.png``.
"""
from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx

from ..core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class QrImageStore(Protocol):
    def get(self, path: str) -> Optional[bytes]:
        raise NotImplementedError

    def put(self, path: str, data: bytes, *, message: str) -> None:
        raise NotImplementedError

    def delete(self, path: str, *, message: str) -> bool:
        """Remove the file; False when it did not exist."""
        raise NotImplementedError


class GitHubContentsStore(QrImageStore):
    def __init__(
        self,
        *,
        token: str,
        owner: str,
        repo: str,
        branch: str = "main",
        base_url: str = GITHUB_API_URL,
        timeout: float = 15.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._token = token
        self._owner = owner
        self._repo = repo
        self._branch = branch or "main"
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def _assert_config(self) -> None:
        if not self._token or not self._owner or not self._repo:
            raise ExternalServiceError(
                "Missing GitHub config: set GITHUB_TOKEN, GITHUB_OWNER, GITHUB_REPO (and optionally GITHUB_BRANCH)."
            )

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "User-Agent": "tutor-checkin-qr-uploader",
        }

    def _url(self, path: str) -> str:
        return f"{self._base_url}/repos/{quote(self._owner, safe='')}/{quote(self._repo, safe='')}/contents/{quote(path)}"

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, self._url(path), headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"GitHub {method} failed: {e}") from e

    def _raise_for_status(self, r: httpx.Response, action: str) -> None:
        if r.is_success:
            return
        raise ExternalServiceError(
            f"GitHub {action} failed: {r.status_code}",
            status_code=r.status_code,
            details=r.text,
        )

    def _stat(self, path: str) -> Optional[dict[str, Any]]:
        self._assert_config()
        r = self._send("GET", path, params={"ref": self._branch})
        if r.status_code == 404:
            return None
        self._raise_for_status(r, "GET")
        return r.json()

    def get(self, path: str) -> Optional[bytes]:
        info = self._stat(path)
        if not info:
            return None
        content = str(info.get("content") or "").replace("\n", "")
        return base64.b64decode(content)

    def put(self, path: str, data: bytes, *, message: str) -> None:
        existing = self._stat(path)
        body: dict[str, Any] = {
            "message": message,
            "branch": self._branch,
            "content": base64.b64encode(data).decode("ascii"),
        }
        if existing and existing.get("sha"):
            body["sha"] = existing["sha"]

        r = self._send("PUT", path, json=body)
        self._raise_for_status(r, "PUT")
        logger.info("Committed %s to %s/%s@%s", path, self._owner, self._repo, self._branch)

    def delete(self, path: str, *, message: str) -> bool:
        existing = self._stat(path)
        if not existing or not existing.get("sha"):
            return False

        r = self._send("DELETE", path, json={"message": message, "branch": self._branch, "sha": existing["sha"]})
        self._raise_for_status(r, "DELETE")
        return True


class LocalDirStore(QrImageStore):
    def __init__(self, root: str | Path):
        self._root = Path(root)

    def _path(self, path: str) -> Path:
        return self._root / path

    def get(self, path: str) -> Optional[bytes]:
        p = self._path(path)
        return p.read_bytes() if p.is_file() else None

    def put(self, path: str, data: bytes, *, message: str) -> None:
        p = self._path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        logger.debug("%s -> %s", message, p)

    def delete(self, path: str, *, message: str) -> bool:
        p = self._path(path)
        if not p.is_file():
            return False
        p.unlink()
        logger.debug("%s -> %s", message, p)
        return True
