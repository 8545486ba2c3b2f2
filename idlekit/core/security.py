"""Security gate for data crossing in from untrusted sources.

Workflow definitions, requests, step parameters, provider configuration and
broker options must be data-only: scalars, mappings, sequences and plain
structured objects. Anything callable (functions, lambdas, bound methods,
classes, objects implementing ``__call__``) or a raw code object is rejected
with the exact traversal path, e.g. ``Workflow.Steps[2].With.Filter``.

Host extension points (handler registry, provider instances, event sinks,
auth broker) are trusted by construction and only checked for shape via
:func:`require_operation` / :func:`assert_data_map`.
"""

import dataclasses
import types
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from idlekit.exceptions import ExecutableContentDetected, WorkflowValidationError

_CODE_TYPES = (types.CodeType, types.GeneratorType, types.CoroutineType, types.AsyncGeneratorType)


def assert_data_only(value: Any, path: str = "$") -> None:
    """Walk *value* recursively and reject executable content.

    Args:
        value: Untrusted data (map, sequence, model, scalar).
        path:  Label for the root, used as prefix in error paths.

    Raises:
        ExecutableContentDetected: with ``path`` set to the offending field.
    """
    _walk(value, path, set())


def is_data_only(value: Any) -> bool:
    try:
        assert_data_only(value)
    except ExecutableContentDetected:
        return False
    return True


def assert_data_map(value: Any, what: str) -> None:
    """Shape check for option/config maps: must be a mapping of data."""
    if value is None:
        return
    if not isinstance(value, Mapping):
        raise WorkflowValidationError(
            f"{what} must be a map, got {type(value).__name__}.",
            violations=[f"{what}: expected map"],
        )
    assert_data_only(value, what)


def require_operation(obj: Any, operation: str, what: str, error_cls: type = WorkflowValidationError) -> None:
    """Shape check for trusted host objects: must expose *operation* as a method.

    A bare function or lambda is rejected even if it happens to carry an
    attribute of that name; the host must pass an object.
    """
    if isinstance(obj, (types.FunctionType, types.LambdaType, types.MethodType, types.BuiltinFunctionType)):
        raise error_cls(f"{what} must be an object exposing '{operation}()', not an inline callable.")
    fn = getattr(obj, operation, None)
    if fn is None or not callable(fn):
        raise error_cls(f"{what} must expose a callable '{operation}()' operation.")


def _walk(value: Any, path: str, active: set[int]) -> None:
    if value is None or isinstance(value, (str, bytes, bool, int, float)):
        return

    if isinstance(value, _CODE_TYPES) or callable(value):
        raise ExecutableContentDetected(
            f"Executable content is not allowed at '{path}' ({type(value).__name__}).",
            path=path,
        )

    marker = id(value)
    if marker in active:
        # Self-reference, already being walked higher up.
        return

    if isinstance(value, Mapping):
        active.add(marker)
        for key, item in value.items():
            if callable(key) or isinstance(key, _CODE_TYPES):
                raise ExecutableContentDetected(
                    f"Executable map key is not allowed at '{path}'.", path=path
                )
            _walk(item, f"{path}.{key}", active)
        active.discard(marker)
        return

    if isinstance(value, (list, tuple, set, frozenset)):
        active.add(marker)
        for index, item in enumerate(value):
            _walk(item, f"{path}[{index}]", active)
        active.discard(marker)
        return

    if isinstance(value, BaseModel):
        active.add(marker)
        for field_name in type(value).model_fields:
            _walk(getattr(value, field_name), f"{path}.{field_name}", active)
        active.discard(marker)
        return

    if dataclasses.is_dataclass(value):
        active.add(marker)
        for field in dataclasses.fields(value):
            _walk(getattr(value, field.name), f"{path}.{field.name}", active)
        active.discard(marker)
        return

    # Any other non-callable object (datetime, UUID, Decimal, SecretStr, ...)
    # is an opaque value and cannot execute.
