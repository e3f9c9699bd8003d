"""One-hop helper resolution over a complete method inventory."""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence

import structlog

from apimeta.errors import HelperResolutionError
from apimeta.extraction.models import ServiceMethod

logger = structlog.get_logger(__name__)


def resolve_helpers(methods: Sequence[ServiceMethod]) -> list[ServiceMethod]:
    """Copy each delegating method's verb from the helper it calls.

    Lookups go against the inventory as passed in, so a helper that itself delegates
    is not followed further: its verb must already be known.
    """

    by_name = {method.name: method for method in methods}
    resolved: list[ServiceMethod] = []
    for method in methods:
        helper = method.helper_reference
        if method.http_method or helper is None:
            resolved.append(method)
            continue
        target = by_name.get(helper.name)
        if target is None:
            raise HelperResolutionError(
                method.name,
                helper.name,
                f"unable to find helper method {helper.name!r} for {method.name!r}",
            )
        if not target.http_method:
            raise HelperResolutionError(
                method.name,
                helper.name,
                f"helper method {helper.name!r} for {method.name!r} has empty http method",
            )
        logger.debug(
            "helper_resolved",
            method=method.name,
            helper=helper.name,
            http_method=target.http_method,
        )
        resolved.append(dataclasses.replace(method, http_method=target.http_method))
    return resolved


__all__ = ["resolve_helpers"]
