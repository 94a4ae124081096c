"""Pydantic base schema utilities for agent core models."""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseSchema(BaseModel):
    """
    Base Pydantic model for all domain schemas.

    Configures common Pydantic behaviors:
    - ``populate_by_name=True``: Allow initialization by alias or field name.
    - ``extra="forbid"``: Prevent unknown fields from slipping into the model, ensuring strict validation.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
    )


class WireSchema(BaseSchema):
    """
    Base model for values that are persisted inside checkpoints.

    Instances are immutable and serialize with camelCase keys
    (``createdAt``, ``toolCalls``...) when dumped ``by_alias``; Python code
    keeps using the snake_case field names.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
    )


class FrozenDict(dict):
    """Read-only ``dict`` held by immutable schemas.

    Reads, equality and serialization behave like a plain ``dict``; every
    in-place write raises ``TypeError``. Derive a changed copy instead, for
    example ``{**frozen, key: value}``.
    """

    def _read_only(self, *args: Any, **kwargs: Any) -> Any:
        raise TypeError(f"{type(self).__name__} is read-only")

    __setitem__ = _read_only
    __delitem__ = _read_only
    __ior__ = _read_only
    clear = _read_only
    pop = _read_only
    popitem = _read_only
    setdefault = _read_only
    update = _read_only

    def __copy__(self) -> "FrozenDict":
        return self

    def __deepcopy__(self, memo: dict) -> "FrozenDict":
        return FrozenDict(copy.deepcopy(dict(self), memo))

    def __reduce__(self) -> Any:
        return (FrozenDict, (dict(self),))


def freeze(values: Mapping[str, Any]) -> FrozenDict:
    """Detach ``values`` from its owner and wrap it read-only."""
    return FrozenDict(copy.deepcopy(dict(values)))
