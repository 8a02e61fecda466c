"""HTTP client for the GitHub Gist API.

This module provides:
- GistClient: HTTP client for the remote settings store
- RemoteSnapshot / GistFile: Gist contents as returned by the server
- Error classification by status code (401, 404, network)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"

# Description of the gists created by editorsync
GIST_DESCRIPTION = "VSCode's Settings - Syncing"

DEFAULT_TIMEOUT = 8.0


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """The GitHub token was rejected."""


class NotFoundError(APIError):
    """The gist does not exist (or is not visible with this token)."""


class NetworkError(APIError):
    """Connectivity problem, timeout or unexpected server answer."""


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class GistFile:
    """A file of a gist."""

    filename: str
    content: str | None = None

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> GistFile:
        """Create from API response dictionary."""
        return cls(filename=data.get("filename") or name, content=data.get("content"))


@dataclass
class RemoteSnapshot:
    """A gist: a revisioned set of named text files.

    Attributes:
        id: Gist id.
        files: Files keyed by remote name. An absent key means the file
            does not exist remotely.
        updated_at: Revision timestamp assigned by the server.
        description: Gist description.
        owner_id: Id of the GitHub user owning the gist.
    """

    id: str
    files: dict[str, GistFile] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=lambda: datetime.fromtimestamp(0, tz=timezone.utc))
    description: str = ""
    owner_id: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteSnapshot:
        """Create from API response dictionary."""
        files = data.get("files") or {}
        owner = data.get("owner") or {}
        return cls(
            id=str(data["id"]),
            files={
                name: GistFile.from_dict(name, value or {})
                for name, value in files.items()
            },
            updated_at=_parse_timestamp(data.get("updated_at")),
            description=data.get("description") or "",
            owner_id=owner.get("id"),
        )

    def content_of(self, name: str) -> str | None:
        """Get the content of a remote file, None if it does not exist."""
        file = self.files.get(name)
        return file.content if file else None


@dataclass
class GitHubUser:
    """The authenticated GitHub user."""

    id: int
    login: str


class GistClient:
    """HTTP client for the gist holding the settings."""

    def __init__(
        self,
        token: str | None = None,
        proxy: str | None = None,
        base_url: str = GITHUB_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the gist client.

        Args:
            token: GitHub Personal Access Token (optional for public reads).
            proxy: Proxy URL.
            base_url: Base URL of the GitHub API.
            timeout: Request timeout in seconds.
        """
        self._token = token or None
        self._proxy = proxy or None
        headers = {"Accept": "application/vnd.github+json"}
        if self._token:
            headers["Authorization"] = f"token {self._token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=headers,
            proxy=self._proxy,
        )

    @property
    def token(self) -> str | None:
        """Get the GitHub token."""
        return self._token

    @property
    def proxy(self) -> str | None:
        """Get the proxy URL."""
        return self._proxy

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> GistClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request and classify failures."""
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(
                "Please check your Internet connection or proxy settings."
            ) from e

        if response.status_code == 401:
            raise AuthenticationError("Please check your GitHub Personal Access Token.", 401)
        if response.status_code == 404:
            raise NotFoundError("Please check your Gist ID.", 404)
        if response.status_code >= 400:
            raise NetworkError(
                "Please check your Internet connection or proxy settings.",
                response.status_code,
            )
        return response

    def _json(self, response: httpx.Response) -> Any:
        """Decode a response body, failing on anything but JSON."""
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(
                "Unexpected response from GitHub. Please check your proxy settings.",
                response.status_code,
            ) from e

    def _snapshot(self, response: httpx.Response, data: Any = None) -> RemoteSnapshot:
        """Build a snapshot from a response body (or one item of it)."""
        if data is None:
            data = self._json(response)
        try:
            return RemoteSnapshot.from_dict(data)
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise NetworkError(
                "Unexpected response from GitHub. Please check your proxy settings.",
                response.status_code,
            ) from e

    # === User ===

    def user(self) -> GitHubUser | None:
        """Get the authenticated user, None when unavailable."""
        try:
            response = self._request("GET", "/user")
            data = self._json(response)
            return GitHubUser(id=data["id"], login=data["login"])
        except APIError as e:
            logger.debug("Cannot get the authenticated user: %s", e)
            return None
        except (KeyError, TypeError) as e:
            logger.debug("Unexpected user payload: %s", e)
            return None

    # === Gist operations ===

    def get(self, gist_id: str) -> RemoteSnapshot:
        """Get a gist.

        Args:
            gist_id: Gist id.

        Returns:
            The gist contents.

        Raises:
            NotFoundError: If the gist does not exist.
            AuthenticationError: If the token is rejected.
            NetworkError: On any other failure.
        """
        response = self._request("GET", f"/gists/{gist_id}")
        return self._snapshot(response)

    def exists(self, gist_id: str) -> RemoteSnapshot | None:
        """Get a gist if it exists and belongs to the authenticated user.

        Returns:
            The gist, or None when it is missing or owned by someone else.
        """
        if not gist_id or not gist_id.strip():
            return None
        try:
            snapshot = self.get(gist_id)
        except NotFoundError:
            return None

        if self._token:
            user = self.user()
            if user is None or user.id != snapshot.owner_id:
                logger.warning("Gist %s is not owned by the authenticated user", gist_id)
                return None
        return snapshot

    def get_last_modified(self, gist_id: str) -> datetime:
        """Get the revision timestamp of a gist."""
        return self.get(gist_id).updated_at

    def list_all(self) -> list[RemoteSnapshot]:
        """List the settings gists of the authenticated user.

        Returns:
            Gists created by editorsync (or holding an ``extensions.json``),
            oldest revision first.
        """
        response = self._request("GET", "/gists")
        gists = [self._snapshot(response, g) for g in self._json(response)]
        gists = [
            g for g in gists
            if g.description == GIST_DESCRIPTION or "extensions.json" in g.files
        ]
        return sorted(gists, key=lambda g: g.updated_at)

    def create(
        self,
        files: dict[str, str],
        description: str = GIST_DESCRIPTION,
        public: bool = False,
    ) -> RemoteSnapshot:
        """Create a gist.

        Args:
            files: File contents keyed by remote name.
            description: Gist description.
            public: Whether the gist is public.

        Returns:
            The created gist, with its server-assigned id.
        """
        payload = {
            "description": description,
            "public": public,
            "files": {name: {"content": content} for name, content in files.items()},
        }
        response = self._request("POST", "/gists", json=payload)
        snapshot = self._snapshot(response)
        logger.info("Created gist %s", snapshot.id)
        return snapshot

    def update(self, gist_id: str, files: dict[str, str | None]) -> RemoteSnapshot:
        """Update the files of a gist.

        Args:
            gist_id: Gist id.
            files: New contents keyed by remote name; None deletes the file.

        Returns:
            The updated gist.
        """
        payload = {
            "files": {
                name: (None if content is None else {"content": content})
                for name, content in files.items()
            },
        }
        response = self._request("PATCH", f"/gists/{gist_id}", json=payload)
        return self._snapshot(response)

    def delete(self, gist_id: str) -> None:
        """Delete a gist."""
        self._request("DELETE", f"/gists/{gist_id}")
