from __future__ import annotations

from typing import Any


class MeshError(ValueError):
    """Base class for everything pycylinder raises on purpose."""


class InvalidParameter(MeshError):
    """A parameter set field is outside its documented constraint."""

    def __init__(self, field: str, value: Any, constraint: str) -> None:
        self.field = field
        self.value = value
        self.constraint = constraint
        super().__init__(f"{field} must be {constraint} (got {value!r})")
