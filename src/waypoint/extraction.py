"""Typed extraction of link payloads.

Populates dataclass instances from JSON payload bytes, converting
string values to the annotated field types. Used by ``TypedPlugin`` to
turn the raw payload of a decision into its declared schema.

Supported field types: ``str``, ``int``, ``float``, ``bool``, nested
dataclasses, ``list``/``tuple``/``set``/``dict`` of those, and optional
variants (``int | None``), so a dataclass encoded with
``dataclasses.asdict`` decodes back into the same shape. Other
annotations receive the decoded JSON value unchanged. Missing keys use
the dataclass field default. A missing required field, a value that
cannot be converted, or bytes that are not a JSON object raise ``PayloadDecodeError``.
"""

from __future__ import annotations

import dataclasses
import json
import types
import typing
from collections.abc import Mapping
from typing import Any

from waypoint.errors import PayloadDecodeError


def decode_payload[T](cls: type[T], payload: bytes | None) -> T:
    """Decode JSON *payload* into an instance of dataclass *cls*."""
    if payload is None:
        msg = f"No payload to decode into {cls.__name__}"
        raise PayloadDecodeError(msg)
    try:
        data = json.loads(payload)
    except (ValueError, UnicodeDecodeError) as exc:
        msg = f"Payload is not valid JSON: {exc}"
        raise PayloadDecodeError(msg) from exc
    if not isinstance(data, Mapping):
        msg = f"Payload must be a JSON object, got {type(data).__name__}"
        raise PayloadDecodeError(msg)
    return extract_dataclass(cls, data)


def extract_dataclass[T](cls: type[T], data: Mapping[str, Any]) -> T:
    """Create a dataclass instance from a mapping.

    For each field in *cls*, looks up the field name in *data* and
    converts the value to the field's annotated type.
    """
    if not dataclasses.is_dataclass(cls):
        msg = f"{cls!r} is not a dataclass"
        raise TypeError(msg)

    hints = typing.get_type_hints(cls)
    kwargs: dict[str, Any] = {}

    for f in dataclasses.fields(cls):
        if not f.init or f.name not in data:
            continue
        kwargs[f.name] = _convert(f.name, data[f.name], hints.get(f.name, Any))

    try:
        return cls(**kwargs)
    except TypeError as exc:
        # Missing required fields surface as TypeError from __init__
        msg = f"Cannot build {cls.__name__} from payload: {exc}"
        raise PayloadDecodeError(msg) from exc


def _convert(name: str, value: Any, target_type: Any) -> Any:
    """Convert *value* to *target_type*, raising ``PayloadDecodeError`` on failure."""
    target_type, optional = _unwrap_optional(target_type)
    if value is None:
        if optional:
            return None
        msg = f"Field {name!r} must not be null"
        raise PayloadDecodeError(msg)

    if target_type is str:
        return value if isinstance(value, str) else str(value)

    if target_type is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in ("true", "1", "yes", "on"):
                return True
            if lowered in ("false", "0", "no", "off"):
                return False
        msg = f"Field {name!r} expects a boolean, got {value!r}"
        raise PayloadDecodeError(msg)

    if target_type in (int, float):
        if isinstance(value, bool):
            msg = f"Field {name!r} expects a number, got {value!r}"
            raise PayloadDecodeError(msg)
        try:
            return target_type(value)
        except (ValueError, TypeError) as exc:
            msg = f"Field {name!r} expects {target_type.__name__}, got {value!r}"
            raise PayloadDecodeError(msg) from exc

    if isinstance(target_type, type) and dataclasses.is_dataclass(target_type):
        if not isinstance(value, Mapping):
            msg = f"Field {name!r} expects an object for {target_type.__name__}, got {value!r}"
            raise PayloadDecodeError(msg)
        return extract_dataclass(target_type, value)

    origin = typing.get_origin(target_type)
    if origin in (list, tuple, set, frozenset):
        if not isinstance(value, list):
            msg = f"Field {name!r} expects a list, got {value!r}"
            raise PayloadDecodeError(msg)
        args = typing.get_args(target_type)
        if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
            if args and len(args) != len(value):
                msg = f"Field {name!r} expects {len(args)} items, got {len(value)}"
                raise PayloadDecodeError(msg)
            item_types = args or (Any,) * len(value)
        else:
            item_types = (args[0] if args else Any,) * len(value)
        items = [
            _convert(f"{name}[{i}]", item, item_type)
            for i, (item, item_type) in enumerate(zip(value, item_types, strict=True))
        ]
        return origin(items)

    if origin is dict:
        if not isinstance(value, Mapping):
            msg = f"Field {name!r} expects an object, got {value!r}"
            raise PayloadDecodeError(msg)
        _key_type, value_type = typing.get_args(target_type) or (str, Any)
        return {k: _convert(f"{name}[{k!r}]", v, value_type) for k, v in value.items()}

    # Anything else: pass the decoded JSON value through
    return value


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """Split ``X | None`` into ``(X, True)``; anything else is ``(annotation, False)``."""
    origin = typing.get_origin(annotation)
    if origin in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1 and len(args) != len(typing.get_args(annotation)):
            return args[0], True
    return annotation, False
