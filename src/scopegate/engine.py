"""
Policy Engine for scopegate.

The engine is the authorization gate that callers talk to. It holds the
published policies by name, injects request parameters into a policy and
evaluates the result against the caller's granted permissions.

Design Principles:
    - Deny-by-default: unknown policies are denied
    - Fail-closed: missing request parameters produce scopes that match no
      specific grant
    - Lock-free reads: published policies are immutable and the policy
      mapping is replaced as a whole, never edited in place. Writers are
      serialized so concurrent publishes never drop each other

Usage:
    engine = PolicyEngine()
    engine.load("reports.view", "policies/reports_view.json")

    decision = engine.check(
        "reports.view",
        {"reports:read": ["reports:7"]},
        ScopeParams(url_params={":reportId": "7"}),
    )
    if decision.allowed:
        ...
"""

import threading
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

import structlog
from pydantic import BaseModel, ConfigDict, Field

from scopegate.codec import load_evaluator
from scopegate.evaluator import Evaluator, GrantedPermissions
from scopegate.scope import ScopeParams


logger = structlog.get_logger()


class PolicyDecision(BaseModel):
    """
    Result of checking granted permissions against a policy.

    Attributes:
        allowed: Whether the action is permitted
        reason: Human-readable explanation of the decision
        rule_matched: Name of the policy that produced this decision
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool = Field(
        ...,
        description="Whether the action is permitted",
    )
    reason: str = Field(
        ...,
        description="Human-readable explanation of the decision",
    )
    rule_matched: str | None = Field(
        default=None,
        description="Name of the policy that produced this decision",
    )

    @classmethod
    def allow(cls, reason: str, rule: str | None = None) -> "PolicyDecision":
        """Create an ALLOW decision."""
        return cls(allowed=True, reason=reason, rule_matched=rule)

    @classmethod
    def deny(cls, reason: str, rule: str | None = None) -> "PolicyDecision":
        """Create a DENY decision."""
        return cls(allowed=False, reason=reason, rule_matched=rule)


class PolicyEngine:
    """
    Authorization gate over named evaluator trees.

    Attributes:
        policies: Read-only view of the currently published policies
    """

    def __init__(self, policies: Mapping[str, Evaluator] | None = None) -> None:
        self._policies: Mapping[str, Evaluator] = MappingProxyType(dict(policies or {}))
        self._write_lock = threading.Lock()

    @property
    def policies(self) -> Mapping[str, Evaluator]:
        return self._policies

    def get(self, name: str) -> Evaluator | None:
        return self._policies.get(name)

    def publish(self, name: str, evaluator: Evaluator) -> None:
        """Publish (or replace) a single policy."""
        with self._write_lock:
            updated = dict(self._policies)
            updated[name] = evaluator
            self._policies = MappingProxyType(updated)
        logger.debug("policy_published", policy=name)

    def publish_all(self, policies: Mapping[str, Evaluator]) -> None:
        """Replace every published policy at once (hot reload)."""
        replacement = MappingProxyType(dict(policies))
        with self._write_lock:
            self._policies = replacement
        logger.debug("policies_replaced", count=len(policies))

    def retract(self, name: str) -> None:
        """Remove a policy. Later checks against it are denied."""
        with self._write_lock:
            if name not in self._policies:
                return
            updated = dict(self._policies)
            del updated[name]
            self._policies = MappingProxyType(updated)
        logger.debug("policy_retracted", policy=name)

    def load(self, name: str, path: Path | str) -> Evaluator:
        """
        Decode a policy file and publish it under name.

        Raises:
            EvaluatorFormatError: If the file is not a valid policy document
        """
        evaluator = load_evaluator(path)
        self.publish(name, evaluator)
        return evaluator

    def check(
        self,
        policy: str | Evaluator,
        permissions: GrantedPermissions,
        params: ScopeParams | None = None,
    ) -> PolicyDecision:
        """
        Check granted permissions against a policy.

        The policy is injected with params (an empty ScopeParams when
        omitted) before evaluation, so templates referencing absent
        parameters fail closed.

        Args:
            policy: Name of a published policy, or an evaluator tree
            permissions: The caller's granted permissions (action -> scopes)
            params: Request parameters used to resolve scope templates

        Returns:
            PolicyDecision indicating allow/deny with reason
        """
        if isinstance(policy, str):
            evaluator = self._policies.get(policy)
            rule: str | None = policy
            if evaluator is None:
                logger.warning("policy_unknown", policy=policy)
                return PolicyDecision.deny(
                    f"Unknown policy: {policy}",
                    rule="deny_by_default",
                )
        else:
            evaluator = policy
            rule = None

        concrete = evaluator.inject(params or ScopeParams())
        allowed = concrete.evaluate(permissions)
        logger.debug("policy_checked", policy=rule, allowed=allowed)

        if allowed:
            return PolicyDecision.allow(f"Permission granted: {concrete}", rule=rule)
        return PolicyDecision.deny(f"Missing permission: {concrete}", rule=rule)
