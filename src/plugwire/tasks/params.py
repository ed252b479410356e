"""Task parameter validation and sensitive-value wrapping.

Parameters whose names start with ``_`` are metaparameters (``_noop``,
``_run_as``, ...). They are passed straight through to the task and are
never validated against its signature.
"""

from __future__ import annotations

import re
from typing import Any

from plugwire.exceptions import TaskParameterError
from plugwire.models import Task, TaskSignature

_BASE_TYPE_RE = re.compile(r"^([A-Za-z]+)")
_OPTIONAL_RE = re.compile(r"^Optional\[(.*)\]$")


class Sensitive:
    """Wrapper that keeps a secret value out of logs and reprs.

    Example::

        password = Sensitive("hunter2")
        str(password)       # 'Sensitive [value redacted]'
        password.unwrap()   # 'hunter2'
    """

    __slots__ = ("_value",)

    def __init__(self, value: Any) -> None:
        self._value = value

    def unwrap(self) -> Any:
        return self._value

    def __repr__(self) -> str:
        return "Sensitive [value redacted]"

    __str__ = __repr__

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Sensitive) and other._value == self._value

    def __hash__(self) -> int:
        return hash(("Sensitive", repr(self._value)))


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "Boolean"
    if isinstance(value, int):
        return "Integer"
    if isinstance(value, float):
        return "Float"
    if isinstance(value, str):
        return "String"
    if isinstance(value, list):
        return "Array"
    if isinstance(value, dict):
        return "Hash"
    if value is None:
        return "Undef"
    return type(value).__name__


def type_matches(type_expr: str, value: Any) -> bool:
    """Return True if *value* satisfies the task type expression *type_expr*."""
    if isinstance(value, Sensitive):
        value = value.unwrap()

    optional = _OPTIONAL_RE.match(type_expr.strip())
    if optional:
        if value is None:
            return True
        type_expr = optional.group(1)

    base = _BASE_TYPE_RE.match(type_expr.strip())
    name = base.group(1) if base else "Any"

    if name == "String":
        return isinstance(value, str)
    if name == "Integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if name in ("Float", "Numeric"):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if name == "Boolean":
        return isinstance(value, bool)
    if name in ("Array", "Tuple"):
        return isinstance(value, list)
    if name in ("Hash", "Struct"):
        return isinstance(value, dict)
    # Any, Data, Enum, Variant, Pattern... are accepted as-is.
    return True


def validate_params(signature: TaskSignature, params: dict[str, Any]) -> None:
    """Check *params* against the parameters declared by *signature*.

    Args:
        signature: The task signature from the compiler.
        params: Parameter values supplied by the caller.

    Raises:
        TaskParameterError: Listing every missing, unknown, or mistyped
            parameter.
    """
    declared = signature.metadata.parameters
    problems: list[str] = []

    for name, param in declared.items():
        if name not in params and param.required:
            problems.append(f"expects a value for parameter '{name}'")

    for name, value in params.items():
        if name.startswith("_"):
            continue
        param = declared.get(name)
        if param is None:
            if declared:
                problems.append(f"has no parameter named '{name}'")
            continue
        if not type_matches(param.type, value):
            problems.append(
                f"parameter '{name}' expects a {param.type} value, got {_type_name(value)}"
            )

    if problems:
        raise TaskParameterError(signature.name, problems)


def wrap_sensitive(task: Task, params: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *params* with the task's sensitive parameters wrapped."""
    sensitive = task.sensitive_parameters
    return {
        name: Sensitive(value)
        if name in sensitive and not isinstance(value, Sensitive)
        else value
        for name, value in params.items()
    }


def unwrap_sensitive(params: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *params* with every :class:`Sensitive` unwrapped."""
    return {
        name: value.unwrap() if isinstance(value, Sensitive) else value
        for name, value in params.items()
    }
