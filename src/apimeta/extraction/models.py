"""Typed records produced by endpoint extraction."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final

from apimeta.constants import HTTP_VERBS


@dataclass(frozen=True, slots=True)
class HelperReference:
    """A same-class method that a service method delegates its request to."""

    owner_type: str
    method_name: str

    @property
    def name(self) -> str:
        return f"{self.owner_type}.{self.method_name}"


@dataclass(frozen=True, slots=True)
class EndpointInfo:
    """Best-effort HTTP semantics recovered from one method body."""

    http_method: str = ""
    url_templates: tuple[str, ...] = ()
    helper_reference: HelperReference | None = None

    @property
    def is_empty(self) -> bool:
        return not self.http_method and not self.url_templates and self.helper_reference is None


@dataclass(frozen=True, slots=True)
class ServiceMethod:
    owner_type: str
    method_name: str
    source_file: str
    http_method: str = ""
    url_templates: tuple[str, ...] = ()
    helper_reference: HelperReference | None = None
    exported: bool = True

    @property
    def name(self) -> str:
        return f"{self.owner_type}.{self.method_name}"

    @property
    def url(self) -> str:
        return self.url_templates[0] if self.url_templates else ""

    def sort_key(self) -> tuple[str, str]:
        return (self.source_file, self.name)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "source_file": self.source_file,
            "http_method": self.http_method,
            "url_templates": list(self.url_templates),
            "helper": None if self.helper_reference is None else self.helper_reference.name,
        }


@dataclass(frozen=True, slots=True)
class VerbOverride:
    """Fixed verb and URL template for a receiver-qualified call name."""

    http_method: str
    url: str


@dataclass(frozen=True, slots=True)
class RequestCallShape:
    """How a request-issuing call exposes its verb and URL."""

    url_arg: int
    method_arg: int | None = None
    fixed_method: str = ""
    url_keyword: str = "url"
    method_keyword: str = "method"


DEFAULT_REQUEST_CALLS: Final[Mapping[str, RequestCallShape]] = {
    "new_request": RequestCallShape(method_arg=0, url_arg=1),
    "new_form_request": RequestCallShape(method_arg=0, url_arg=1),
    "new_upload_request": RequestCallShape(fixed_method="POST", url_arg=0),
    "round_trip_with_optional_follow_redirect": RequestCallShape(fixed_method="GET", url_arg=1),
}

DEFAULT_VERB_OVERRIDES: Final[Mapping[str, VerbOverride]] = {
    "self._search": VerbOverride(http_method="GET", url="search/{arg}"),
}


@dataclass(frozen=True, slots=True)
class AnalyzerConfig:
    """Injectable tables steering the body analyzer and source scanner."""

    request_calls: Mapping[str, RequestCallShape] = field(
        default_factory=lambda: dict(DEFAULT_REQUEST_CALLS)
    )
    template_calls: frozenset[str] = frozenset({"sprintf", "format_path"})
    options_calls: frozenset[str] = frozenset({"add_options"})
    verb_overrides: Mapping[str, VerbOverride] = field(
        default_factory=lambda: dict(DEFAULT_VERB_OVERRIDES)
    )
    skip_methods: frozenset[str] = frozenset()
    context_name: str = "ctx"
    service_suffix: str = "Service"
    client_class: str = "Client"
    client_core_files: frozenset[str] = frozenset({"client.py"})

    def __post_init__(self) -> None:
        for call_name, override in self.verb_overrides.items():
            if override.http_method.upper() not in HTTP_VERBS:
                raise ValueError(
                    f"verb override {call_name!r} has unknown method {override.http_method!r}"
                )
        for call_name, shape in self.request_calls.items():
            if shape.method_arg is None and not shape.fixed_method:
                raise ValueError(f"request call {call_name!r} needs method_arg or fixed_method")

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> AnalyzerConfig:
        """Build from the validated ``[analysis]`` config section."""

        overrides: dict[str, VerbOverride] = {}
        raw_overrides = payload.get("verb_overrides")
        if isinstance(raw_overrides, Mapping):
            for key in sorted(raw_overrides):
                item = raw_overrides[key]
                if isinstance(item, Mapping):
                    overrides[key] = VerbOverride(
                        http_method=str(item.get("method", "")).upper(),
                        url=str(item.get("url", "")),
                    )
        defaults = cls()
        return cls(
            request_calls=defaults.request_calls,
            template_calls=_string_set(payload.get("template_calls"), defaults.template_calls),
            options_calls=_string_set(payload.get("options_calls"), defaults.options_calls),
            verb_overrides=overrides if raw_overrides is not None else defaults.verb_overrides,
            skip_methods=_string_set(payload.get("skip_methods"), defaults.skip_methods),
            context_name=str(payload.get("context_name", defaults.context_name)),
            service_suffix=str(payload.get("service_suffix", defaults.service_suffix)),
            client_class=str(payload.get("client_class", defaults.client_class)),
            client_core_files=_string_set(
                payload.get("client_core_files"), defaults.client_core_files
            ),
        )


def _string_set(value: object, default: frozenset[str]) -> frozenset[str]:
    if isinstance(value, (list, tuple)):
        return frozenset(str(item) for item in value)
    return default


__all__ = [
    "AnalyzerConfig",
    "DEFAULT_REQUEST_CALLS",
    "DEFAULT_VERB_OVERRIDES",
    "EndpointInfo",
    "HelperReference",
    "RequestCallShape",
    "ServiceMethod",
    "VerbOverride",
]
