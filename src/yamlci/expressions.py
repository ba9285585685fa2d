# expressions.py
"""
`${{ ... }}` expressions.

Two consumers:
  - interpolate(): substitutes expressions inside step inputs and commands
  - compile_guard(): turns an `if:` string into a model.Guard

The grammar is the small subset workflow files actually use:

    expr    := or
    or      := and ('||' and)*
    and     := unary ('&&' unary)*
    unary   := '!' unary | cmp
    cmp     := primary (('==' | '!=') primary)?
    primary := '(' expr ')' | literal | call '()' | reference

References are dotted paths into a context (`matrix.python-version`,
`secrets.CODECOV_TOKEN`, `github.event_name`, `env.FOO`).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import ConfigurationError, GuardEvaluationFailure, MissingSecretError
from .model import ALWAYS, ON_FAILURE, ON_SUCCESS, Guard, GuardContext, GuardKind


EXPR_RE = re.compile(r"\$\{\{\s*(.*?)\s*\}\}", re.DOTALL)

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<op>&&|\|\||==|!=|!|\(|\))
      | (?P<str>'(?:[^']|'')*')
      | (?P<num>-?\d+(?:\.\d+)?)
      | (?P<ident>[A-Za-z_][A-Za-z0-9_\-]*(?:\.[A-Za-z_][A-Za-z0-9_\-]*)*)
    )
    """,
    re.VERBOSE,
)

STATUS_FUNCTIONS = ("success", "failure", "always", "cancelled")


class UnknownReference(LookupError):
    pass


def render_value(value: Any) -> str:
    """String form of a YAML scalar as it appears inside commands and inputs."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def repeated_values(values: Iterable[Any]) -> List[str]:
    """Rendered values that occur more than once (3.1 and 3.10 collide)."""
    seen: set = set()
    dupes: List[str] = []
    for v in values:
        rendered = render_value(v)
        if rendered in seen and rendered not in dupes:
            dupes.append(rendered)
        seen.add(rendered)
    return dupes


# ---------------------------------------------------------------------
# Scope
# ---------------------------------------------------------------------

@dataclass
class Scope:
    """Contexts visible to an expression, plus job-instance failure state."""
    contexts: Dict[str, Mapping[str, Any]]
    failed: bool = False

    def lookup(self, path: str) -> Any:
        head, _, rest = path.partition(".")
        if head not in self.contexts or not rest:
            raise UnknownReference(path)
        ctx = self.contexts[head]
        if rest not in ctx:
            if head == "secrets":
                raise MissingSecretError(rest)
            raise UnknownReference(path)
        return ctx[rest]


# ---------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------

Node = Callable[[Scope], Any]


def _tokenize(src: str) -> List[Tuple[str, str]]:
    tokens: List[Tuple[str, str]] = []
    pos = 0
    src = src.rstrip()
    while pos < len(src):
        m = _TOKEN_RE.match(src, pos)
        if not m or m.end() == pos:
            raise ConfigurationError(f"invalid expression {src!r} at offset {pos}")
        kind = m.lastgroup
        tokens.append((kind, m.group(kind)))
        pos = m.end()
    return tokens


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value != ""
    return bool(value)


def _equals(a: Any, b: Any) -> bool:
    if isinstance(a, str) and isinstance(b, str):
        return a.lower() == b.lower()
    try:
        return float(a) == float(b)
    except (TypeError, ValueError):
        return render_value(a).lower() == render_value(b).lower()


class _Parser:
    def __init__(self, src: str):
        self.src = src
        self.tokens = _tokenize(src)
        self.i = 0
        self.calls: List[str] = []

    def _peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.i] if self.i < len(self.tokens) else None

    def _take(self, value: str | None = None) -> Tuple[str, str]:
        tok = self._peek()
        if tok is None or (value is not None and tok[1] != value):
            raise ConfigurationError(f"invalid expression {self.src!r}: expected {value or 'token'}")
        self.i += 1
        return tok

    def parse(self) -> Node:
        node = self._or()
        if self._peek() is not None:
            raise ConfigurationError(f"invalid expression {self.src!r}: trailing {self._peek()[1]!r}")
        return node

    def _or(self) -> Node:
        left = self._and()
        while self._peek() == ("op", "||"):
            self._take()
            right = self._and()
            left = (lambda l, r: lambda s: l(s) if _truthy(l(s)) else r(s))(left, right)
        return left

    def _and(self) -> Node:
        left = self._unary()
        while self._peek() == ("op", "&&"):
            self._take()
            right = self._unary()
            left = (lambda l, r: lambda s: r(s) if _truthy(l(s)) else l(s))(left, right)
        return left

    def _unary(self) -> Node:
        if self._peek() == ("op", "!"):
            self._take()
            inner = self._unary()
            return lambda s: not _truthy(inner(s))
        return self._cmp()

    def _cmp(self) -> Node:
        left = self._primary()
        tok = self._peek()
        if tok in (("op", "=="), ("op", "!=")):
            self._take()
            right = self._primary()
            if tok[1] == "==":
                return lambda s: _equals(left(s), right(s))
            return lambda s: not _equals(left(s), right(s))
        return left

    def _primary(self) -> Node:
        kind, value = self._take()
        if (kind, value) == ("op", "("):
            node = self._or()
            self._take(")")
            return node
        if kind == "str":
            lit = value[1:-1].replace("''", "'")
            return lambda s: lit
        if kind == "num":
            num = float(value) if "." in value else int(value)
            return lambda s: num
        if kind == "ident":
            if value in ("true", "false"):
                const = value == "true"
                return lambda s: const
            if value == "null":
                return lambda s: None
            if self._peek() == ("op", "("):
                self._take("(")
                self._take(")")
                return self._call(value)
            return lambda s: s.lookup(value)
        raise ConfigurationError(f"invalid expression {self.src!r}: unexpected {value!r}")

    def _call(self, fn: str) -> Node:
        if fn not in STATUS_FUNCTIONS:
            raise ConfigurationError(f"unsupported function {fn}() in {self.src!r}")
        self.calls.append(fn)
        if fn == "success":
            return lambda s: not s.failed
        if fn == "failure":
            return lambda s: s.failed
        if fn == "always":
            return lambda s: True
        # cancellation is never observed by this interpreter
        return lambda s: False


def parse_expression(src: str) -> Node:
    return _Parser(src).parse()


# ---------------------------------------------------------------------
# Interpolation
# ---------------------------------------------------------------------

def references(text: str) -> List[str]:
    """Raw `${{ }}` bodies in text, in order."""
    return [m.group(1) for m in EXPR_RE.finditer(text or "")]


def interpolate(text: str, scope: Scope) -> str:
    """
    Replace every `${{ expr }}` in text.

    Raises MissingSecretError for unset secrets and ConfigurationError for
    references to contexts or keys that do not exist.
    """
    def _sub(m: re.Match) -> str:
        node = parse_expression(m.group(1))
        try:
            return render_value(node(scope))
        except UnknownReference as e:
            raise ConfigurationError(f"unknown reference '{e.args[0]}' in '{m.group(0)}'") from e

    return EXPR_RE.sub(_sub, text)


# ---------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------

def _strip_wrapper(src: str) -> str:
    src = src.strip()
    m = EXPR_RE.fullmatch(src)
    return m.group(1).strip() if m else src


def compile_guard(source: Any) -> Guard:
    """
    Compile an `if:` value into a Guard.

    Plain status checks map onto the enum kinds; anything else becomes a
    CUSTOM guard. As in GitHub Actions, an expression with no status
    function is implicitly `success() && (expr)`.
    """
    if source is None:
        return ON_SUCCESS
    if isinstance(source, bool):
        const = source
        return Guard(GuardKind.CUSTOM, predicate=lambda ctx: const and not ctx.failed, source=render_value(source))

    text = _strip_wrapper(str(source))
    compact = text.replace(" ", "")
    if compact == "success()":
        return ON_SUCCESS
    if compact == "failure()":
        return ON_FAILURE
    if compact == "always()":
        return ALWAYS

    parser = _Parser(text)
    node = parser.parse()
    implicit_success = not parser.calls

    def predicate(ctx: GuardContext) -> bool:
        scope = Scope(
            contexts={"matrix": ctx.matrix, "env": ctx.env, "github": ctx.github},
            failed=ctx.failed,
        )
        if implicit_success and ctx.failed:
            return False
        try:
            return _truthy(node(scope))
        except (UnknownReference, ConfigurationError) as e:
            raise GuardEvaluationFailure(f"cannot evaluate 'if: {text}': {e}") from e

    return Guard(GuardKind.CUSTOM, predicate=predicate, source=text)
