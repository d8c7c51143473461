"""
JSON codec for evaluator trees.

A policy document is a single evaluator node, one of:

    {"action": "users:read", "scopes": ["users:*", "org.users:*"]}
    {"any": [<node>, ...]}
    {"all": [<node>, ...]}

"scopes" is optional; without it the permission only requires the action.
Nodes nest to any depth. Decoded trees hold literal scope strings only;
placeholders exist only in policies built in code.

Validation is strict and fail-closed: a document that is empty, not an
object, carries none (or more than one) of the three keys, carries unknown
keys, or holds a value of the wrong JSON type is rejected with an
EvaluatorFormatError. No partial tree is ever returned.
"""

import json
from pathlib import Path
from typing import Annotated, Any, Union

import structlog
import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    StrictStr,
    Tag,
    TypeAdapter,
    ValidationError,
)

from scopegate.errors import EvaluatorFormatError, PermissionsFormatError
from scopegate.evaluator import (
    AllEvaluator,
    AnyEvaluator,
    Evaluator,
    PermissionEvaluator,
)


logger = structlog.get_logger()

TOO_DEEP = "document is nested too deeply"

ACTION_KEY = "action"
ANY_KEY = "any"
ALL_KEY = "all"
NODE_KEYS = (ACTION_KEY, ANY_KEY, ALL_KEY)


# =============================================================================
# Document Models
# =============================================================================


class PermissionDocument(BaseModel):
    """Wire form of a PermissionEvaluator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action: StrictStr
    scopes: list[StrictStr] = Field(default_factory=list)


class AnyDocument(BaseModel):
    """Wire form of an AnyEvaluator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    any: list["EvaluatorDocument"]


class AllDocument(BaseModel):
    """Wire form of an AllEvaluator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    all: list["EvaluatorDocument"]


def _node_kind(value: Any) -> str | None:
    """
    Pick the document model for a raw node.

    Returns None (rejected by pydantic) unless value is an object holding
    exactly one of the node keys.
    """
    if isinstance(value, PermissionDocument):
        return ACTION_KEY
    if isinstance(value, AnyDocument):
        return ANY_KEY
    if isinstance(value, AllDocument):
        return ALL_KEY
    if not isinstance(value, dict):
        return None

    present = [key for key in NODE_KEYS if key in value]
    if len(present) != 1:
        return None
    return present[0]


EvaluatorDocument = Annotated[
    Union[
        Annotated[PermissionDocument, Tag(ACTION_KEY)],
        Annotated[AnyDocument, Tag(ANY_KEY)],
        Annotated[AllDocument, Tag(ALL_KEY)],
    ],
    Discriminator(
        _node_kind,
        custom_error_type="invalid_evaluator",
        custom_error_message=(
            'Expected an object with exactly one of "action", "any" or "all"'
        ),
    ),
]

AnyDocument.model_rebuild()
AllDocument.model_rebuild()

_DOCUMENT_ADAPTER: TypeAdapter[Any] = TypeAdapter(EvaluatorDocument)
_PERMISSIONS_ADAPTER: TypeAdapter[dict[str, list[str]]] = TypeAdapter(
    dict[StrictStr, list[StrictStr]]
)


def _format_location(loc: tuple[int | str, ...]) -> str:
    """Render a pydantic error location as "any[1].all[0].scopes[2]"."""
    path = ""
    previous: int | str | None = None
    for item in loc:
        if isinstance(item, int):
            path += f"[{item}]"
        elif item in NODE_KEYS and (previous is None or isinstance(previous, int)):
            # discriminator tag, not a field
            pass
        else:
            path += f".{item}" if path else item
        previous = item
    return path


def _to_evaluator(document: PermissionDocument | AnyDocument | AllDocument) -> Evaluator:
    if isinstance(document, PermissionDocument):
        return PermissionEvaluator(action=document.action, scopes=tuple(document.scopes))
    if isinstance(document, AnyDocument):
        return AnyEvaluator(children=tuple(_to_evaluator(c) for c in document.any))
    return AllEvaluator(children=tuple(_to_evaluator(c) for c in document.all))


# =============================================================================
# Decoding
# =============================================================================


def decode_document(document: Any) -> Evaluator:
    """
    Decode an already-parsed policy document.

    Raises:
        EvaluatorFormatError: If the document is not a valid evaluator node
    """
    if not isinstance(document, dict):
        raise EvaluatorFormatError(
            reason=f"expected a JSON object, got {type(document).__name__}",
        )

    try:
        parsed = _DOCUMENT_ADAPTER.validate_python(document)
        return _to_evaluator(parsed)
    except RecursionError:
        raise EvaluatorFormatError(reason=TOO_DEEP) from None
    except ValidationError as e:
        first = e.errors()[0]
        path = _format_location(first["loc"])
        logger.debug(
            "evaluator_decode_failed",
            path=path,
            reason=first["msg"],
            error_count=e.error_count(),
        )
        raise EvaluatorFormatError(path=path, reason=first["msg"]) from e


def decode(data: bytes | str | None) -> Evaluator:
    """
    Decode a JSON policy document into an evaluator tree.

    Args:
        data: Raw JSON document

    Returns:
        The decoded evaluator tree

    Raises:
        EvaluatorFormatError: If data is empty, not JSON, or not a valid node
    """
    if not data:
        raise EvaluatorFormatError(reason="empty policy document")

    try:
        document = json.loads(data)
    except RecursionError:
        raise EvaluatorFormatError(reason=TOO_DEEP) from None
    except ValueError as e:
        raise EvaluatorFormatError(reason=f"invalid JSON: {e}") from e

    return decode_document(document)


# =============================================================================
# Encoding
# =============================================================================


def to_document(evaluator: Evaluator) -> dict[str, Any]:
    """
    Convert an evaluator tree into its JSON-compatible document.

    Scope templates are written in their unresolved form, so inject a tree
    before encoding it if it holds placeholders.
    """
    if isinstance(evaluator, PermissionEvaluator):
        return {
            ACTION_KEY: evaluator.action,
            "scopes": [str(s) for s in evaluator.scopes],
        }
    if isinstance(evaluator, AnyEvaluator):
        return {ANY_KEY: [to_document(c) for c in evaluator.children]}
    if isinstance(evaluator, AllEvaluator):
        return {ALL_KEY: [to_document(c) for c in evaluator.children]}

    msg = f"Cannot encode evaluator of type {type(evaluator).__name__}"
    raise TypeError(msg)


def encode(evaluator: Evaluator, indent: int | None = None) -> str:
    """Encode an evaluator tree as a JSON policy document."""
    return json.dumps(to_document(evaluator), indent=indent)


# =============================================================================
# File Loading Helpers
# =============================================================================


def _load_file(path: Path) -> Any:
    with path.open() as f:
        if path.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f)


def load_evaluator(path: Path | str) -> Evaluator:
    """
    Load a policy document from a JSON or YAML file.

    Args:
        path: Path to the file (.json is parsed as JSON, anything else as YAML)

    Returns:
        The decoded evaluator tree

    Raises:
        FileNotFoundError: If the file doesn't exist
        EvaluatorFormatError: If the file is empty or not a valid node
    """
    path = Path(path)
    try:
        document = _load_file(path)
    except RecursionError:
        raise EvaluatorFormatError(reason=f"{TOO_DEEP}: {path.name}") from None
    except (ValueError, yaml.YAMLError) as e:
        raise EvaluatorFormatError(reason=f"cannot parse {path.name}: {e}") from e

    if document is None:
        raise EvaluatorFormatError(reason=f"empty policy document: {path.name}")

    return decode_document(document)


def parse_permissions(document: Any) -> dict[str, list[str]]:
    """
    Validate a granted-permissions mapping (action -> list of scopes).

    Raises:
        PermissionsFormatError: If document is not such a mapping
    """
    try:
        return _PERMISSIONS_ADAPTER.validate_python(document)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(item) for item in first["loc"])
        reason = f"{where}: {first['msg']}" if where else first["msg"]
        raise PermissionsFormatError(reason=reason) from e


def load_permissions(path: Path | str) -> dict[str, list[str]]:
    """
    Load granted permissions from a JSON or YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        PermissionsFormatError: If the file is not a valid grants mapping
    """
    path = Path(path)
    try:
        document = _load_file(path)
    except (ValueError, yaml.YAMLError) as e:
        raise PermissionsFormatError(reason=f"cannot parse {path.name}: {e}") from e

    if document is None:
        return {}

    return parse_permissions(document)
