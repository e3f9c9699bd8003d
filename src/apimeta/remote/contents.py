"""
apimeta — remote contents client

File: src/apimeta/remote/contents.py
Last updated: 2026-10-18

Purpose
- Define the three-call contents protocol used by remote sync and implement it against
  the GitHub REST API with ``requests``.

Functional requirements
- ``get_commit(ref)`` resolves a ref to a commit sha.
- ``list_directory(path, ref)`` returns entries with their download URLs.
- ``download(url)`` returns raw bytes.
- Transport and HTTP failures surface as ``RemoteFetchError``; nothing is retried here.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final, Protocol
from urllib.parse import quote

import requests
import structlog

from apimeta.constants import DEFAULT_API_URL, DEFAULT_DESCRIPTION_REPOSITORY
from apimeta.errors import RemoteFetchError

logger = structlog.get_logger(__name__)

_ACCEPT_JSON: Final[str] = "application/vnd.github+json"
_API_VERSION: Final[str] = "2022-11-28"


@dataclass(frozen=True, slots=True)
class RemoteEntry:
    name: str
    download_url: str = ""


class ContentsClient(Protocol):
    def get_commit(self, ref: str) -> str: ...

    def list_directory(self, path: str, ref: str) -> list[RemoteEntry]: ...

    def download(self, url: str) -> bytes: ...


class GitHubContentsClient:
    """``ContentsClient`` over the GitHub REST contents and commits endpoints."""

    def __init__(
        self,
        *,
        api_url: str = DEFAULT_API_URL,
        repository: str = DEFAULT_DESCRIPTION_REPOSITORY,
        token: str | None = None,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if repository.count("/") != 1:
            raise ValueError(f"repository must be 'owner/name', got {repository!r}")
        self._api_url = api_url.rstrip("/")
        self._repository = repository
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update(
            {"Accept": _ACCEPT_JSON, "X-GitHub-Api-Version": _API_VERSION}
        )
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_config(
        cls,
        remote: Mapping[str, object],
        *,
        environ: Mapping[str, str] | None = None,
    ) -> GitHubContentsClient:
        """Build from the ``[remote]`` config section; the token comes from ``token_env``."""

        env = os.environ if environ is None else environ
        token_env = str(remote.get("token_env", "GITHUB_TOKEN"))
        token = env.get(token_env, "").strip() or None
        timeout = remote.get("timeout_seconds", 30.0)
        return cls(
            api_url=str(remote.get("api_url", DEFAULT_API_URL)),
            repository=str(remote.get("repository", DEFAULT_DESCRIPTION_REPOSITORY)),
            token=token,
            timeout_seconds=float(timeout) if isinstance(timeout, (int, float)) else 30.0,
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> GitHubContentsClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def get_commit(self, ref: str) -> str:
        payload = self._get_json(f"repos/{self._repository}/commits/{quote(ref, safe='')}")
        sha = payload.get("sha") if isinstance(payload, Mapping) else None
        if not isinstance(sha, str) or not sha:
            raise RemoteFetchError(f"commit response for {ref!r} has no sha")
        return sha

    def list_directory(self, path: str, ref: str) -> list[RemoteEntry]:
        payload = self._get_json(
            f"repos/{self._repository}/contents/{quote(path.strip('/'))}",
            params={"ref": ref},
        )
        if not isinstance(payload, list):
            raise RemoteFetchError(f"{path!r} at {ref} is not a directory")
        entries: list[RemoteEntry] = []
        for item in payload:
            if not isinstance(item, Mapping) or not isinstance(item.get("name"), str):
                raise RemoteFetchError(f"unexpected directory entry in {path!r}: {item!r}")
            entries.append(
                RemoteEntry(
                    name=item["name"],
                    download_url=item.get("download_url") or "",
                )
            )
        return entries

    def download(self, url: str) -> bytes:
        logger.debug("remote_download_started", url=url)
        response = self._request(url)
        return response.content

    def _get_json(self, endpoint: str, *, params: Mapping[str, str] | None = None) -> Any:
        response = self._request(f"{self._api_url}/{endpoint}", params=params)
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteFetchError(f"invalid JSON from {response.url}: {exc}") from exc

    def _request(
        self, url: str, *, params: Mapping[str, str] | None = None
    ) -> requests.Response:
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "?"
            raise RemoteFetchError(f"GET {url} failed with status {status}") from exc
        except requests.RequestException as exc:
            raise RemoteFetchError(f"GET {url} failed: {exc}") from exc
        return response


__all__ = ["ContentsClient", "GitHubContentsClient", "RemoteEntry"]
