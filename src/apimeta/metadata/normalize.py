"""URL-template normalization used to compare operation names by shape."""

from __future__ import annotations

import threading

from apimeta.constants import PATH_WILDCARD


def parse_operation_name(name: str) -> tuple[str, str]:
    """Split ``"VERB /path"`` into ``(verb, path)``; the path is empty when absent."""

    verb, _, url = name.partition(" ")
    return verb, url


def normalize_url(url: str) -> str:
    """Replace every ``{param}`` path segment with the wildcard marker."""

    segments = url.split("/")
    return "/".join(PATH_WILDCARD if segment.startswith("{") else segment for segment in segments)


class NormalizationCache:
    """Memoized :func:`normalize_url`, safe to share between threads.

    Entries are never evicted; normalization is a pure function of the raw URL.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._urls: dict[str, str] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)

    def normalize_url(self, url: str) -> str:
        with self._lock:
            cached = self._urls.get(url)
            if cached is None:
                cached = normalize_url(url)
                self._urls[url] = cached
            return cached

    def normalized_name(self, name: str) -> str:
        verb, url = parse_operation_name(name)
        return f"{verb} {self.normalize_url(url)}"


__all__ = ["NormalizationCache", "normalize_url", "parse_operation_name"]
