"""Shared API schema base.

The wire format uses camelCase; Python code uses snake_case.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from proofage.errors import ValidationError

F = TypeVar("F", bound=Callable[..., Any])


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def body_error(error_cls: type[ValidationError]) -> Callable[[F], F]:
    """Report request-body validation failures on this endpoint as error_cls."""

    def decorator(func: F) -> F:
        func.body_error = error_cls  # type: ignore[attr-defined]
        return func

    return decorator
