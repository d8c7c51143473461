"""
scopegate - action + scope permission policies.

scopegate evaluates small boolean policies over "action + scope" permission
checks:
- Permission checks combined with all/any
- Scope templates resolved per request (org id, URL parameters)
- A JSON document format for storing policies as data

Example usage:
    >>> from scopegate import ScopeParams, eval_permission, parameter, scope
    >>> policy = eval_permission("reports:read", scope("reports", parameter(":reportId")))
    >>> concrete = policy.inject(ScopeParams(url_params={":reportId": "1"}))
    >>> concrete.evaluate({"reports:read": ["reports:*"]})
    True
"""

__version__ = "0.1.0"
__author__ = "scopegate Contributors"

from scopegate.codec import decode, encode, load_evaluator, load_permissions
from scopegate.engine import PolicyDecision, PolicyEngine
from scopegate.errors import (
    EvaluatorFormatError,
    PermissionsFormatError,
    ScopegateError,
    ScopeMutationError,
    UnknownScopeFieldError,
)
from scopegate.evaluator import (
    AllEvaluator,
    AnyEvaluator,
    Evaluator,
    PermissionEvaluator,
    eval_all,
    eval_any,
    eval_permission,
)
from scopegate.scope import (
    ScopeField,
    ScopeParams,
    ScopeTemplate,
    field,
    inject_scope,
    matches,
    parameter,
    scope,
    scope_injector,
)

__all__ = [
    "__version__",
    "__author__",
    "AllEvaluator",
    "AnyEvaluator",
    "Evaluator",
    "EvaluatorFormatError",
    "PermissionEvaluator",
    "PermissionsFormatError",
    "PolicyDecision",
    "PolicyEngine",
    "ScopeField",
    "ScopeMutationError",
    "ScopeParams",
    "ScopeTemplate",
    "ScopegateError",
    "UnknownScopeFieldError",
    "decode",
    "encode",
    "eval_all",
    "eval_any",
    "eval_permission",
    "field",
    "inject_scope",
    "load_evaluator",
    "load_permissions",
    "matches",
    "parameter",
    "scope",
    "scope_injector",
]
