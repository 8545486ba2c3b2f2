"""Declarative step conditions. Never interprets an expression language.

A condition is authored as data and parsed once, at plan-build time, into a
small tree of frozen nodes:

  Equals     {"Equals":    {"Path": "Request.LifecycleEvent", "Value": "Joiner"}}
  NotEquals  {"NotEquals": {"Path": "...", "Value": ...}}
  Exists     {"Exists": "Request.DesiredState.Manager"}  or  {"Exists": {"Path": "..."}}
  In         {"In":        {"Path": "...", "Values": [...]}}
  All/Any/None  {"All": [cond, cond, ...]}

Paths are dot-separated and must start with ``Request.`` or ``Plan.``;
provider internals are never in scope. Keys are matched case-insensitively.
String comparisons are case-insensitive; everything else uses ``==``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any, Union

from pydantic import BaseModel

from idlekit.core.templates import lookup_path
from idlekit.exceptions import ConditionError

ALLOWED_CONDITION_ROOTS: tuple[str, ...] = ("Request", "Plan")

_PATH_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z0-9_][A-Za-z0-9_-]*)+$")


# ── Condition tree ────────────────────────────────────────────────────────────


class EqualsCondition(BaseModel):
    model_config = {"frozen": True}
    path: str
    value: Any = None

    def evaluate(self, scope: Mapping[str, Any]) -> bool:
        found, actual = lookup_path(scope, self.path)
        return found and _values_equal(actual, self.value)

    def describe(self) -> str:
        return f"{self.path} equals {self.value!r}"


class NotEqualsCondition(BaseModel):
    model_config = {"frozen": True}
    path: str
    value: Any = None

    def evaluate(self, scope: Mapping[str, Any]) -> bool:
        found, actual = lookup_path(scope, self.path)
        return not (found and _values_equal(actual, self.value))

    def describe(self) -> str:
        return f"{self.path} not equals {self.value!r}"


class ExistsCondition(BaseModel):
    model_config = {"frozen": True}
    path: str

    def evaluate(self, scope: Mapping[str, Any]) -> bool:
        found, actual = lookup_path(scope, self.path)
        if not found or actual is None:
            return False
        return not (isinstance(actual, str) and actual == "")

    def describe(self) -> str:
        return f"{self.path} exists"


class InCondition(BaseModel):
    model_config = {"frozen": True}
    path: str
    values: tuple[Any, ...] = ()

    def evaluate(self, scope: Mapping[str, Any]) -> bool:
        found, actual = lookup_path(scope, self.path)
        return found and any(_values_equal(actual, v) for v in self.values)

    def describe(self) -> str:
        return f"{self.path} in {list(self.values)!r}"


class AllCondition(BaseModel):
    model_config = {"frozen": True}
    items: tuple["Condition", ...]

    def evaluate(self, scope: Mapping[str, Any]) -> bool:
        return all(item.evaluate(scope) for item in self.items)

    def describe(self) -> str:
        return "all of (" + "; ".join(i.describe() for i in self.items) + ")"


class AnyCondition(BaseModel):
    model_config = {"frozen": True}
    items: tuple["Condition", ...]

    def evaluate(self, scope: Mapping[str, Any]) -> bool:
        return any(item.evaluate(scope) for item in self.items)

    def describe(self) -> str:
        return "any of (" + "; ".join(i.describe() for i in self.items) + ")"


class NoneCondition(BaseModel):
    model_config = {"frozen": True}
    items: tuple["Condition", ...]

    def evaluate(self, scope: Mapping[str, Any]) -> bool:
        return not any(item.evaluate(scope) for item in self.items)

    def describe(self) -> str:
        return "none of (" + "; ".join(i.describe() for i in self.items) + ")"


Condition = Union[
    EqualsCondition, NotEqualsCondition, ExistsCondition, InCondition,
    AllCondition, AnyCondition, NoneCondition,
]

for _model in (AllCondition, AnyCondition, NoneCondition):
    _model.model_rebuild()


# ── Parsing ───────────────────────────────────────────────────────────────────


def parse_condition(raw: Any, path: str = "Condition") -> Condition:
    """Parse an authored condition into a condition tree.

    Args:
        raw:  The authored data (map with exactly one operator key).
        path: Location used in error messages, e.g. ``Steps[1].Condition``.

    Raises:
        ConditionError: unknown operator, wrong operand shape, or bad path.
    """
    if not isinstance(raw, Mapping):
        raise ConditionError(
            f"{path}: condition must be a map with a single operator key, "
            f"got {type(raw).__name__}.",
            path=path,
        )
    if len(raw) != 1:
        raise ConditionError(
            f"{path}: condition must have exactly one operator key, got {sorted(map(str, raw))}.",
            path=path,
        )

    key, operand = next(iter(raw.items()))
    op = str(key).lower()
    here = f"{path}.{key}"

    if op in ("equals", "notequals"):
        fields = _operand_map(operand, here, required=("path", "value"))
        node_cls = EqualsCondition if op == "equals" else NotEqualsCondition
        return node_cls(path=_check_path(fields["path"], here), value=fields["value"])

    if op == "exists":
        if isinstance(operand, str):
            return ExistsCondition(path=_check_path(operand, here))
        fields = _operand_map(operand, here, required=("path",))
        return ExistsCondition(path=_check_path(fields["path"], here))

    if op == "in":
        fields = _operand_map(operand, here, required=("path", "values"))
        values = fields["values"]
        if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
            raise ConditionError(f"{here}.Values must be a list.", path=here)
        return InCondition(path=_check_path(fields["path"], here), values=tuple(values))

    if op in ("all", "any", "none"):
        if isinstance(operand, (str, bytes)) or not isinstance(operand, Sequence) or not operand:
            raise ConditionError(f"{here} must be a non-empty list of conditions.", path=here)
        items = tuple(
            parse_condition(item, f"{here}[{index}]") for index, item in enumerate(operand)
        )
        node_cls = {"all": AllCondition, "any": AnyCondition, "none": NoneCondition}[op]
        return node_cls(items=items)

    raise ConditionError(
        f"{path}: unknown condition operator '{key}'. "
        "Supported: Equals, NotEquals, Exists, In, All, Any, None.",
        path=path,
    )


def evaluate_condition(condition: Condition, scope: Mapping[str, Any]) -> bool:
    """Evaluate a parsed condition against the allow-listed scope roots."""
    return bool(condition.evaluate(scope))


# ── Helpers ───────────────────────────────────────────────────────────────────


def _operand_map(operand: Any, where: str, required: tuple[str, ...]) -> dict[str, Any]:
    if not isinstance(operand, Mapping):
        raise ConditionError(f"{where} must be a map.", path=where)
    fields = {str(k).lower(): v for k, v in operand.items()}
    unknown = sorted(set(fields) - set(required))
    if unknown:
        raise ConditionError(f"{where} has unknown keys: {unknown}.", path=where)
    for name in required:
        if name not in fields:
            raise ConditionError(f"{where} is missing '{name.capitalize()}'.", path=where)
    return fields


def _check_path(value: Any, where: str) -> str:
    if not isinstance(value, str) or not _PATH_RE.match(value.strip()):
        raise ConditionError(f"{where}: invalid path {value!r}.", path=where)
    value = value.strip()
    if value.split(".", 1)[0] not in ALLOWED_CONDITION_ROOTS:
        raise ConditionError(
            f"{where}: path '{value}' must start with one of "
            f"{', '.join(r + '.' for r in ALLOWED_CONDITION_ROOTS)}",
            path=where,
        )
    return value


def _values_equal(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str) and isinstance(expected, str):
        return actual.casefold() == expected.casefold()
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    return actual == expected
