"""
Evaluator tree for permission checks.

An evaluator is an immutable tree built from three node types:

    PermissionEvaluator  one action plus the scopes it must cover
    AllEvaluator         every child must pass (AND)
    AnyEvaluator         at least one child must pass (OR)

Trees are frozen pydantic models with tuple fields. Injection never edits a
tree in place; mutate_scopes() returns a new tree with the same shape, so a
single parsed policy can be shared by concurrent requests.

Example:
    policy = eval_any(
        eval_permission("settings:write", scope("settings", "*")),
        eval_all(
            eval_permission("settings:write", "settings:auth.saml:enabled"),
            eval_permission("settings:write", "settings:auth.saml:max_issue_delay"),
        ),
    )
    policy.evaluate({"settings:write": ["settings:*"]})  # True
"""

from abc import ABC, abstractmethod
from collections.abc import Collection, Mapping

from pydantic import BaseModel, ConfigDict, Field

from scopegate.errors import ScopegateError, ScopeMutationError
from scopegate.scope import (
    ScopeLike,
    ScopeMutator,
    ScopeParams,
    ScopeTemplate,
    matches,
    scope_injector,
)


GrantedPermissions = Mapping[str, Collection[str]]


class Evaluator(BaseModel, ABC):
    """Base class for every node of an evaluator tree."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    @abstractmethod
    def evaluate(self, permissions: GrantedPermissions) -> bool:
        """Return True if the granted permissions satisfy this node."""

    @abstractmethod
    def mutate_scopes(self, mutator: ScopeMutator) -> "Evaluator":
        """
        Return a copy of this tree with every scope list passed through mutator.

        Node kinds and child order are preserved and self is left untouched.

        Raises:
            ScopeMutationError: If mutator raises a non-scopegate exception
        """

    @abstractmethod
    def scope_templates(self) -> list[ScopeTemplate]:
        """List the scope templates held by this tree, in traversal order."""

    def inject(self, params: ScopeParams) -> "Evaluator":
        """Resolve every scope template in the tree against params."""
        return self.mutate_scopes(scope_injector(params))

    @property
    def needs_injection(self) -> bool:
        return any(t.has_placeholders for t in self.scope_templates())


class PermissionEvaluator(Evaluator):
    """
    Leaf node: one action and the scopes it applies to.

    With no scopes, holding the action at all is enough. Otherwise at least
    one wanted scope must match at least one granted scope for the action.
    Templates that still hold placeholders are compared in their unresolved
    form, so only a wildcard grant covering their literal prefix matches them.

    Attributes:
        action: Action key looked up in the granted permissions
        scopes: Wanted scopes, literal strings or templates
    """

    action: str
    scopes: tuple[ScopeLike, ...] = Field(default_factory=tuple)

    def evaluate(self, permissions: GrantedPermissions) -> bool:
        if self.action not in permissions:
            return False

        if not self.scopes:
            return True

        granted = permissions[self.action]
        for wanted in self.scopes:
            wanted_str = str(wanted)
            for granted_scope in granted:
                if matches(wanted_str, granted_scope):
                    return True
        return False

    def mutate_scopes(self, mutator: ScopeMutator) -> "PermissionEvaluator":
        try:
            scopes = mutator(self.scopes)
        except ScopegateError:
            raise
        except Exception as e:
            raise ScopeMutationError(action=self.action, underlying_error=str(e)) from e

        return PermissionEvaluator(action=self.action, scopes=tuple(scopes))

    def scope_templates(self) -> list[ScopeTemplate]:
        return [s for s in self.scopes if isinstance(s, ScopeTemplate)]

    def __str__(self) -> str:
        if not self.scopes:
            return self.action
        return f"{self.action}[{', '.join(str(s) for s in self.scopes)}]"


class AllEvaluator(Evaluator):
    """AND node. Children are evaluated in order; an empty node passes."""

    children: tuple[Evaluator, ...] = Field(default_factory=tuple)

    def evaluate(self, permissions: GrantedPermissions) -> bool:
        for child in self.children:
            if not child.evaluate(permissions):
                return False
        return True

    def mutate_scopes(self, mutator: ScopeMutator) -> "AllEvaluator":
        return AllEvaluator(
            children=tuple(child.mutate_scopes(mutator) for child in self.children)
        )

    def scope_templates(self) -> list[ScopeTemplate]:
        return [t for child in self.children for t in child.scope_templates()]

    def __str__(self) -> str:
        return f"all({', '.join(str(c) for c in self.children)})"


class AnyEvaluator(Evaluator):
    """OR node. Children are evaluated in order; an empty node fails."""

    children: tuple[Evaluator, ...] = Field(default_factory=tuple)

    def evaluate(self, permissions: GrantedPermissions) -> bool:
        for child in self.children:
            if child.evaluate(permissions):
                return True
        return False

    def mutate_scopes(self, mutator: ScopeMutator) -> "AnyEvaluator":
        return AnyEvaluator(
            children=tuple(child.mutate_scopes(mutator) for child in self.children)
        )

    def scope_templates(self) -> list[ScopeTemplate]:
        return [t for child in self.children for t in child.scope_templates()]

    def __str__(self) -> str:
        return f"any({', '.join(str(c) for c in self.children)})"


# =============================================================================
# Constructors
# =============================================================================


def eval_permission(action: str, *scopes: ScopeLike) -> PermissionEvaluator:
    """Build a permission check, e.g. eval_permission("reports:read", "reports:1")."""
    return PermissionEvaluator(action=action, scopes=scopes)


def eval_all(*children: Evaluator) -> AllEvaluator:
    """Build an AND node over children."""
    return AllEvaluator(children=children)


def eval_any(*children: Evaluator) -> AnyEvaluator:
    """Build an OR node over children."""
    return AnyEvaluator(children=children)
