"""
Scopes, scope templates and scope injection.

A scope is a colon-separated string such as "reports:read:1". The last
segment may be the wildcard marker "*", meaning "this prefix and anything
beyond it".

Policies built in code describe scopes as templates: a resource kind plus
literal parts and placeholders. Placeholders are resolved per request
against a ScopeParams bag:

    template = scope("reports", parameter(":reportId"))
    inject_scope(template, ScopeParams(url_params={":reportId": "7"}))
    # -> "reports:7"

Resolution never fails. A URL parameter missing from the bag resolves to
an empty segment, so the resulting scope matches no specific grant and
the check fails closed unless a wildcard grant covers the kind.
"""

from collections.abc import Callable, Sequence
from enum import Enum
from typing import TypeAlias

import structlog
from pydantic import BaseModel, ConfigDict, Field

from scopegate.errors import UnknownScopeFieldError


logger = structlog.get_logger()

SEPARATOR = ":"
WILDCARD = "*"


# =============================================================================
# Matching
# =============================================================================


def is_wildcard(scope: str) -> bool:
    """Return True if the final segment of scope is the wildcard marker."""
    return scope == WILDCARD or scope.endswith(SEPARATOR + WILDCARD)


def matches(wanted: str, granted: str) -> bool:
    """
    Check whether a wanted scope and a granted scope overlap.

    Either side may carry the trailing wildcard segment:

        matches("reports:1", "reports:1")    -> True
        matches("reports:*", "reports:1")    -> True
        matches("reports:1", "reports:*")    -> True
        matches("reports:1", "reports:2")    -> False
        matches("reports*", "reports:1")     -> False (not a wildcard segment)

    Comparison is case-sensitive.
    """
    if wanted == granted:
        return True

    if is_wildcard(wanted) and granted.startswith(wanted[:-1]):
        return True

    if is_wildcard(granted) and wanted.startswith(granted[:-1]):
        return True

    return False


# =============================================================================
# Parameters
# =============================================================================


class ScopeField(str, Enum):
    """Fields of ScopeParams that a template may reference."""

    ORG_ID = "org_id"


class ScopeParams(BaseModel):
    """
    Request-scoped values used to resolve scope templates.

    Attributes:
        org_id: Organization of the current request
        url_params: URL/path parameters keyed by name, sigil included (":id")
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    org_id: int = Field(
        default=0,
        description="Organization of the current request",
    )
    url_params: dict[str, str] = Field(
        default_factory=dict,
        description="URL/path parameter values keyed by parameter name",
    )


_FIELD_RESOLVERS: dict[ScopeField, Callable[[ScopeParams], str]] = {
    ScopeField.ORG_ID: lambda params: str(params.org_id),
}


# =============================================================================
# Templates
# =============================================================================


class FieldPlaceholder(BaseModel):
    """Placeholder resolved from a ScopeParams field."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: ScopeField

    def resolve(self, params: ScopeParams) -> str:
        return _FIELD_RESOLVERS[self.name](params)

    def __str__(self) -> str:
        return "{" + self.name.value + "}"


class ParameterPlaceholder(BaseModel):
    """Placeholder resolved from ScopeParams.url_params."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    key: str = Field(..., min_length=1)

    def resolve(self, params: ScopeParams) -> str:
        value = params.url_params.get(self.key)
        if value is None:
            logger.debug("scope_parameter_missing", key=self.key)
            return ""
        return value

    def __str__(self) -> str:
        return "{" + self.key + "}"


ScopePart: TypeAlias = str | FieldPlaceholder | ParameterPlaceholder


class ScopeTemplate(BaseModel):
    """
    A scope made of a resource kind and an ordered list of parts.

    str(template) gives the unresolved form, with placeholders rendered
    as "{org_id}" or "{:reportId}". A template without placeholders
    renders to its literal scope.

    Attributes:
        kind: Resource kind, the first scope segment (e.g. "reports")
        parts: Literal segments and placeholders following the kind
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: str
    parts: tuple[ScopePart, ...] = ()

    @property
    def has_placeholders(self) -> bool:
        return any(not isinstance(part, str) for part in self.parts)

    def resolve(self, params: ScopeParams) -> str:
        """Resolve every placeholder against params and join the segments."""
        segments = [self.kind]
        for part in self.parts:
            segments.append(part if isinstance(part, str) else part.resolve(params))
        return SEPARATOR.join(segments)

    def __str__(self) -> str:
        return SEPARATOR.join([self.kind, *(str(part) for part in self.parts)])


ScopeLike: TypeAlias = str | ScopeTemplate
ScopeMutator: TypeAlias = Callable[[Sequence[ScopeLike]], Sequence[ScopeLike]]


def scope(kind: str, *parts: ScopePart) -> ScopeTemplate:
    """Build a scope template, e.g. scope("orgs", field(ScopeField.ORG_ID))."""
    return ScopeTemplate(kind=kind, parts=parts)


def field(name: ScopeField | str) -> FieldPlaceholder:
    """
    Build a placeholder for a ScopeParams field.

    Raises:
        UnknownScopeFieldError: If name is not a ScopeField
    """
    try:
        member = ScopeField(name)
    except ValueError:
        raise UnknownScopeFieldError(
            field_name=str(name),
            supported=[f.value for f in ScopeField],
        ) from None
    return FieldPlaceholder(name=member)


def parameter(key: str) -> ParameterPlaceholder:
    """Build a placeholder for a URL parameter, e.g. parameter(":reportId")."""
    return ParameterPlaceholder(key=key)


# =============================================================================
# Injection
# =============================================================================


def inject_scope(template: ScopeLike, params: ScopeParams) -> str:
    """Resolve a scope template to a literal scope. Plain strings pass through."""
    if isinstance(template, str):
        return template
    return template.resolve(params)


def scope_injector(params: ScopeParams) -> ScopeMutator:
    """Return a scope mutator that resolves templates against params."""

    def inject(scopes: Sequence[ScopeLike]) -> list[str]:
        return [inject_scope(s, params) for s in scopes]

    return inject
