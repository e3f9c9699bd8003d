"""
apimeta — method body analyzer

File: src/apimeta/extraction/analyzer.py
Last updated: 2026-10-18

Purpose
- Recover the HTTP verb, URL templates and helper delegation of one SDK method from its
  syntax tree, without executing anything.

What should be included in this file
- A closed statement dispatch (assignment, branch, with/try, return, tolerated no-ops).
- Expression classification for literals, f-strings, ``%``/``.format`` templates and calls.
- Call classification driven by ``AnalyzerConfig`` tables (request, upload, options,
  template and verb-override calls, plus same-receiver helper calls).

Functional requirements
- Unknown statement or assignment-value shapes raise ``UnsupportedSyntaxError``.
- Two different verbs in one body raise ``ConflictingVerbError``.
- Branch bodies accumulate into one shared state; no branch is selected.
- URL templates keep discovery order and are never de-duplicated.

Non-functional requirements
- Nested blocks are walked with an explicit stack.
"""

from __future__ import annotations

import ast
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

import structlog

from apimeta.constants import HTTP_VERBS
from apimeta.errors import ConflictingVerbError, ExtractionError, UnsupportedSyntaxError
from apimeta.extraction.models import AnalyzerConfig, EndpointInfo, HelperReference

logger = structlog.get_logger(__name__)

FunctionNode = ast.FunctionDef | ast.AsyncFunctionDef

_IGNORED_STATEMENTS: tuple[type[ast.stmt], ...] = (
    ast.Expr,
    ast.AugAssign,
    ast.For,
    ast.AsyncFor,
    ast.While,
    ast.Match,
    ast.Pass,
    ast.Break,
    ast.Continue,
    ast.Raise,
    ast.Assert,
    ast.Delete,
    ast.Import,
    ast.ImportFrom,
    ast.Global,
    ast.Nonlocal,
    ast.FunctionDef,
    ast.AsyncFunctionDef,
    ast.ClassDef,
)

# Assignment values that carry no URL or verb information.
_IGNORED_VALUES: tuple[type[ast.expr], ...] = (
    ast.Name,
    ast.Attribute,
    ast.Subscript,
    ast.Dict,
    ast.List,
    ast.Tuple,
    ast.Set,
    ast.ListComp,
    ast.DictComp,
    ast.SetComp,
    ast.GeneratorExp,
    ast.Lambda,
    ast.UnaryOp,
    ast.BoolOp,
    ast.Compare,
    ast.IfExp,
    ast.NamedExpr,
    ast.Starred,
)


# Receivers whose verb-named attributes are HTTP method constants (``http.GET``,
# ``http.HTTPMethod.GET``).
_VERB_NAMESPACES = frozenset({"http", "HTTPMethod"})

@dataclass(frozen=True, slots=True)
class _Literal:
    value: str


@dataclass(frozen=True, slots=True)
class _Ref:
    name: str


_Arg = _Literal | _Ref | None


@dataclass(frozen=True, slots=True)
class _CallInfo:
    receiver: str
    func_name: str
    args: tuple[_Arg, ...]
    keywords: dict[str, _Arg]
    line: int

    def arg(self, index: int | None, keyword: str) -> _Arg:
        if keyword in self.keywords:
            return self.keywords[keyword]
        if index is None or index >= len(self.args):
            return None
        return self.args[index]


@dataclass(slots=True)
class _BodyState:
    receiver: str
    owner_type: str
    config: AnalyzerConfig
    http_method: str = ""
    bindings: list[tuple[str, str]] = field(default_factory=list)
    url_var: str | None = None
    url_templates: list[str] = field(default_factory=list)
    helper_reference: HelperReference | None = None

    def to_info(self) -> EndpointInfo:
        return EndpointInfo(
            http_method=self.http_method,
            url_templates=tuple(self.url_templates),
            helper_reference=self.helper_reference,
        )

    def set_verb(self, verb: str, *, line: int) -> None:
        if self.http_method and self.http_method != verb:
            raise ConflictingVerbError(self.http_method, verb, line=line)
        self.http_method = verb

    def bind(self, name: str | None, value: str) -> None:
        if name is None or value.startswith("?"):
            return
        self.bindings.append((name, value))

    def use_url(self, url: _Arg) -> None:
        if isinstance(url, _Literal):
            self.url_templates.append(url.value)
            return
        if isinstance(url, _Ref) and self.url_var is None:
            self.url_var = url.name
            self.url_templates.extend(value for name, value in self.bindings if name == url.name)

    def record_helper(self, call: _CallInfo) -> None:
        url = call.arg(1, "url")
        if not self.http_method and not self.bindings:
            if isinstance(url, _Literal):
                self.url_templates.append(url.value)
        elif isinstance(url, _Ref):
            self.url_templates.extend(value for name, value in self.bindings if name == url.name)
        if isinstance(url, _Ref) and self.url_var is None:
            self.url_var = url.name
        self.helper_reference = HelperReference(self.owner_type, call.func_name)


class BodyAnalyzer:
    """Analyze SDK method definitions with one injectable ``AnalyzerConfig``."""

    def __init__(self, config: AnalyzerConfig | None = None) -> None:
        self._config = config or AnalyzerConfig()

    @property
    def config(self) -> AnalyzerConfig:
        return self._config

    def analyze(self, function: FunctionNode, *, owner_type: str) -> EndpointInfo:
        if function.name in self._config.skip_methods or (
            f"{owner_type}.{function.name}" in self._config.skip_methods
        ):
            logger.debug("method_skipped", owner_type=owner_type, method=function.name)
            return EndpointInfo()
        return analyze_body(
            function.body,
            receiver=receiver_name(function),
            owner_type=owner_type,
            config=self._config,
        )


def receiver_name(function: FunctionNode) -> str:
    positional = [*function.args.posonlyargs, *function.args.args]
    if not positional:
        return ""
    return positional[0].arg


def analyze_body(
    body: Sequence[ast.stmt],
    *,
    receiver: str,
    owner_type: str,
    config: AnalyzerConfig | None = None,
) -> EndpointInfo:
    """Walk ``body`` and return the accumulated endpoint information."""

    state = _BodyState(receiver=receiver, owner_type=owner_type, config=config or AnalyzerConfig())
    stack: list[Iterator[ast.stmt]] = [iter(body)]
    while stack:
        statement = next(stack[-1], None)
        if statement is None:
            stack.pop()
            continue
        nested = _visit_stmt(statement, state)
        stack.extend(iter(block) for block in reversed(nested))
    return state.to_info()


def _visit_stmt(statement: ast.stmt, state: _BodyState) -> list[list[ast.stmt]]:
    if isinstance(statement, ast.Assign):
        _visit_assign(statement.targets, statement.value, state)
        return []

    if isinstance(statement, ast.AnnAssign):
        if statement.value is not None:
            _visit_assign([statement.target], statement.value, state)
        return []

    if isinstance(statement, ast.If):
        return [statement.body, statement.orelse]

    if isinstance(statement, (ast.With, ast.AsyncWith)):
        return [statement.body]

    if isinstance(statement, (ast.Try, ast.TryStar)):
        return [
            statement.body,
            *(handler.body for handler in statement.handlers),
            statement.orelse,
            statement.finalbody,
        ]

    if isinstance(statement, ast.Return):
        _visit_return(statement, state)
        return []

    if isinstance(statement, _IGNORED_STATEMENTS):
        return []

    raise UnsupportedSyntaxError(
        f"unhandled statement type: {type(statement).__name__}",
        line=getattr(statement, "lineno", None),
    )


def _visit_assign(targets: Sequence[ast.expr], value: ast.expr, state: _BodyState) -> None:
    for name, item in _assignment_pairs(targets, value):
        _visit_value(name, item, state)


def _assignment_pairs(
    targets: Sequence[ast.expr], value: ast.expr
) -> list[tuple[str | None, ast.expr]]:
    # ``a = b = value`` binds the first simple name; tuple unpacking pairs element-wise.
    target = targets[0]
    if (
        isinstance(target, (ast.Tuple, ast.List))
        and isinstance(value, (ast.Tuple, ast.List))
        and len(target.elts) == len(value.elts)
    ):
        return [(_target_name(elt), item) for elt, item in zip(target.elts, value.elts)]
    if isinstance(target, (ast.Tuple, ast.List)):
        first = target.elts[0] if target.elts else None
        return [(_target_name(first) if first is not None else None, value)]
    return [(_target_name(target), value)]


def _target_name(target: ast.expr) -> str | None:
    if isinstance(target, ast.Name):
        return target.id
    return None


def _visit_value(name: str | None, value: ast.expr, state: _BodyState) -> None:
    if isinstance(value, ast.Await):
        value = value.value

    if isinstance(value, ast.Constant):
        if isinstance(value.value, str):
            state.bind(name, value.value)
        return

    template = _template_literal(value, state.config)
    if template is not None:
        state.bind(name, template)
        return

    if isinstance(value, ast.Call):
        _visit_call(name, value, state)
        return

    if isinstance(value, (ast.BinOp, *_IGNORED_VALUES)):
        return

    raise UnsupportedSyntaxError(
        f"unhandled assignment value type: {type(value).__name__}",
        line=getattr(value, "lineno", None),
    )


def _visit_call(name: str | None, node: ast.Call, state: _BodyState) -> None:
    call = _call_info(node, state.config)
    config = state.config

    if call.func_name in config.options_calls:
        first = call.arg(0, "url")
        if isinstance(first, _Literal):
            state.bind(name, first.value)
            state.use_url(_Ref(name) if name is not None else first)
        else:
            state.use_url(first)
    elif call.func_name in config.template_calls:
        first = call.arg(0, "format")
        if isinstance(first, _Literal):
            state.bind(name, first.value)
    elif call.func_name in config.request_calls:
        shape = config.request_calls[call.func_name]
        if shape.fixed_method:
            verb = shape.fixed_method.upper()
        else:
            verb = _verb_from_arg(call.arg(shape.method_arg, shape.method_keyword), call.line)
        if verb:
            state.set_verb(verb, line=call.line)
        state.use_url(call.arg(shape.url_arg, shape.url_keyword))

    if not _is_context_call(call, state):
        return

    override = config.verb_overrides.get(f"{call.receiver}.{call.func_name}")
    if override is None:
        state.record_helper(call)
        return

    argument = call.arg(1, "url")
    rendered = ""
    if isinstance(argument, _Literal):
        rendered = argument.value
    elif isinstance(argument, _Ref):
        rendered = argument.name
    state.set_verb(override.http_method.upper(), line=call.line)
    state.url_templates.append(override.url.replace("{arg}", rendered))


def _visit_return(statement: ast.Return, state: _BodyState) -> None:
    value = statement.value
    if isinstance(value, ast.Tuple) and value.elts:
        value = value.elts[0]
    if isinstance(value, ast.Await):
        value = value.value
    if not isinstance(value, ast.Call) or state.http_method:
        return
    call = _call_info(value, state.config)
    if _is_context_call(call, state):
        state.record_helper(call)


def _is_context_call(call: _CallInfo, state: _BodyState) -> bool:
    if not state.receiver or call.receiver != state.receiver or len(call.args) < 2:
        return False
    first = call.args[0]
    return isinstance(first, _Ref) and first.name == state.config.context_name


def _call_info(node: ast.Call, config: AnalyzerConfig) -> _CallInfo:
    receiver, func_name = _callee_parts(node.func)
    args = tuple(_classify_arg(arg, config) for arg in node.args)
    keywords = {
        keyword.arg: _classify_arg(keyword.value, config)
        for keyword in node.keywords
        if keyword.arg is not None
    }
    return _CallInfo(
        receiver=receiver,
        func_name=func_name,
        args=args,
        keywords=keywords,
        line=node.lineno,
    )


def _callee_parts(func: ast.expr) -> tuple[str, str]:
    if isinstance(func, ast.Name):
        return "", func.id
    if isinstance(func, ast.Attribute):
        return _dotted_name(func.value), func.attr
    return "", ""


def _dotted_name(expression: ast.expr) -> str:
    if isinstance(expression, ast.Name):
        return expression.id
    if isinstance(expression, ast.Attribute):
        prefix = _dotted_name(expression.value)
        return f"{prefix}.{expression.attr}" if prefix else ""
    return ""


def _classify_arg(arg: ast.expr, config: AnalyzerConfig) -> _Arg:
    if isinstance(arg, ast.Constant):
        return _Literal(arg.value) if isinstance(arg.value, str) else None
    if isinstance(arg, ast.Name):
        return _Ref(arg.id)
    if isinstance(arg, ast.Attribute):
        if arg.attr.upper() in HTTP_VERBS and _is_verb_namespace(arg.value):
            return _Literal(arg.attr.upper())
        dotted = _dotted_name(arg)
        return _Ref(dotted) if dotted else None
    template = _template_literal(arg, config)
    if template is not None:
        return _Literal(template)
    if isinstance(arg, ast.Call):
        _, func_name = _callee_parts(arg.func)
        if func_name in config.template_calls and arg.args:
            inner = _classify_arg(arg.args[0], config)
            return inner if isinstance(inner, _Literal) else None
    return None



def _is_verb_namespace(node: ast.expr) -> bool:
    if isinstance(node, ast.Name):
        return node.id in _VERB_NAMESPACES
    return isinstance(node, ast.Attribute) and node.attr in _VERB_NAMESPACES

def _template_literal(value: ast.expr, config: AnalyzerConfig) -> str | None:
    """Return the path template of f-strings, ``"..." % x`` and ``"...".format(x)``."""

    if isinstance(value, ast.JoinedStr):
        return _render_joined_str(value)
    if (
        isinstance(value, ast.BinOp)
        and isinstance(value.op, ast.Mod)
        and isinstance(value.left, ast.Constant)
        and isinstance(value.left.value, str)
    ):
        return value.left.value
    if (
        isinstance(value, ast.Call)
        and isinstance(value.func, ast.Attribute)
        and value.func.attr == "format"
        and isinstance(value.func.value, ast.Constant)
        and isinstance(value.func.value.value, str)
    ):
        return value.func.value.value
    return None


def _render_joined_str(node: ast.JoinedStr) -> str:
    parts: list[str] = []
    for item in node.values:
        if isinstance(item, ast.Constant) and isinstance(item.value, str):
            parts.append(item.value)
        elif isinstance(item, ast.FormattedValue):
            parts.append("{" + ast.unparse(item.value) + "}")
    return "".join(parts)


def _verb_from_arg(arg: _Arg, line: int) -> str:
    if not isinstance(arg, _Literal):
        return ""
    verb = arg.value.upper()
    if verb not in HTTP_VERBS:
        raise ExtractionError(f"unknown HTTP method {arg.value!r}", line=line)
    return verb


__all__ = ["BodyAnalyzer", "analyze_body", "receiver_name"]
