"""JSON Codec - Serializes request bodies and decodes response bodies.

Decoding targets anything pydantic's TypeAdapter can validate: models,
dataclasses, builtin scalars and containers. Abstract result types are
mapped to concrete ones through a JsonSerializerStrategy registry.
"""

from __future__ import annotations

import types
from typing import Any, Union, get_args, get_origin

from pydantic import TypeAdapter


class JsonSerializerStrategy:
    """Pluggable naming/type strategy for the codec.

    Usage:
        strategy = JsonSerializerStrategy()
        strategy.register(Schedule, TvSchedule)
        schedules = deserialize(content, list[Schedule], strategy)
    """

    def __init__(self, by_alias: bool = True) -> None:
        """Initialize the strategy.

        Args:
            by_alias: Emit field aliases (e.g., camelCase names) when serializing.
        """
        self.by_alias = by_alias
        self._types: dict[Any, Any] = {}

    def register(self, abstract: Any, concrete: Any) -> None:
        """Decode values declared as ``abstract`` into ``concrete``."""
        self._types[abstract] = concrete

    def resolve(self, tp: Any) -> Any:
        """Replace registered types in ``tp``, including inside generic arguments."""
        try:
            concrete = self._types.get(tp)
        except TypeError:
            # Unhashable type arguments (e.g., Annotated metadata) pass through
            return tp
        if concrete is not None:
            return concrete

        # Parametrized pydantic generics, e.g. SimpleResult[Schedule]
        metadata = getattr(tp, "__pydantic_generic_metadata__", None)
        if metadata and metadata.get("origin") is not None and metadata.get("args"):
            args = metadata["args"]
            resolved = tuple(self.resolve(arg) for arg in args)
            if resolved == args:
                return tp
            origin = metadata["origin"]
            return origin[resolved[0]] if len(resolved) == 1 else origin[resolved]

        origin = get_origin(tp)
        args = get_args(tp)
        if origin is None or not args:
            return tp

        resolved = tuple(self.resolve(arg) for arg in args)
        if resolved == args:
            return tp
        if origin is Union or origin is types.UnionType:
            return Union[resolved]
        return origin[resolved[0]] if len(resolved) == 1 else origin[resolved]


DEFAULT_STRATEGY = JsonSerializerStrategy()


def zero_value(tp: Any) -> Any:
    """Value returned for an empty response body.

    Numeric and boolean types get their zero; everything else gets None.
    """
    if tp in (int, float, bool):
        return tp()
    return None


def serialize(obj: Any, strategy: JsonSerializerStrategy | None = None) -> bytes:
    """Serialize an object graph to a UTF-8 JSON document."""
    strategy = strategy or DEFAULT_STRATEGY
    return TypeAdapter(type(obj)).dump_json(obj, by_alias=strategy.by_alias)


def deserialize(
    content: str | bytes | None,
    result_type: Any,
    strategy: JsonSerializerStrategy | None = None,
) -> Any:
    """Decode a JSON document into ``result_type``.

    Empty or absent content yields zero_value(result_type) instead of an error.

    Raises:
        pydantic.ValidationError: If the document is not valid JSON or does not
            match the target type.
    """
    if content is None or not content.strip():
        return zero_value(result_type)
    strategy = strategy or DEFAULT_STRATEGY
    return TypeAdapter(strategy.resolve(result_type)).validate_json(content)
