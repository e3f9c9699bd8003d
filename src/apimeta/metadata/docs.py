"""Documentation-link normalization for operation ``documentation_url`` values."""

from __future__ import annotations

import re
from typing import Final
from urllib.parse import urlsplit, urlunsplit

DOC_URL_PREFIX: Final[str] = "https://docs.github.com/rest/"

_DOC_URL_PREFIX_RE: Final[re.Pattern[str]] = re.compile(r"^https://docs\.github\.com.*/rest/")
_ENTERPRISE_CLOUD: Final[str] = "docs.github.com/enterprise-cloud@latest/"
_ENTERPRISE_SERVER: Final[str] = "docs.github.com/enterprise-server"


def normalize_doc_url(url: str) -> str:
    """Rewrite a REST docs link onto its canonical form.

    The first ``/en/`` locale segment is dropped. Enterprise-cloud links keep their host
    path with the doubled slash collapsed; enterprise-server links are left as-is; every
    other ``.../rest/`` link is re-rooted on :data:`DOC_URL_PREFIX`.
    """

    url = url.replace("/en/", "/", 1)
    match = _DOC_URL_PREFIX_RE.match(url)
    if match is None:
        return url
    if _ENTERPRISE_CLOUD in url:
        return url.replace(_ENTERPRISE_CLOUD + "/", _ENTERPRISE_CLOUD)
    if _ENTERPRISE_SERVER in url:
        return url
    return DOC_URL_PREFIX + url[match.end() :]


def same_doc_link(left: str, right: str) -> bool:
    """True when both links render the same docs page section."""

    if not _DOC_URL_PREFIX_RE.match(left) or not _DOC_URL_PREFIX_RE.match(right):
        return left == right
    return _strip_query(normalize_doc_url(left)) == _strip_query(normalize_doc_url(right))


def _strip_query(url: str) -> str:
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    return urlunsplit(parts._replace(query=""))


__all__ = ["DOC_URL_PREFIX", "normalize_doc_url", "same_doc_link"]
