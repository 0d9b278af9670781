"""Serialization of session data to and from store blobs.

The default ``JSONCodec`` writes a named-field envelope::

    {"deadline": "2024-05-01T12:00:00+00:00", "values": {"user": {"t": "str", "v": "alice"}}}

Every value carries a type tag so that ``bytes``, ``datetime``, ints vs.
floats and registered structured types come back exactly as they went in.
Unknown envelope fields are ignored, so new fields can be added without
breaking older readers.

Structured values must be registered before they are stored::

    from sessionkit import register_type

    @register_type
    class Cart(BaseModel):
        items: list[str]
"""

from __future__ import annotations

import base64
import binascii
import dataclasses
import json
from datetime import datetime, timezone
from typing import Any, Callable, Protocol, runtime_checkable

from pydantic import BaseModel

from .errors import DecodeError, EncodeError


@runtime_checkable
class Codec(Protocol):
    """Protocol for session data encoders."""

    def encode(self, deadline: datetime, values: dict[str, Any]) -> bytes:
        ...

    def decode(self, data: bytes) -> tuple[datetime, dict[str, Any]]:
        ...


# ── Type registry ─────────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class _Registration:
    tag: str
    cls: type
    dump: Callable[[Any], dict[str, Any]]
    load: Callable[[dict[str, Any]], Any]


class TypeRegistry:
    """Maps structured value types to stable tags and back."""

    def __init__(self) -> None:
        self._by_tag: dict[str, _Registration] = {}
        self._by_type: dict[type, _Registration] = {}

    def register(
        self,
        cls: type,
        tag: str | None = None,
        *,
        dump: Callable[[Any], dict[str, Any]] | None = None,
        load: Callable[[dict[str, Any]], Any] | None = None,
    ) -> type:
        tag = tag or f"{cls.__module__}.{cls.__qualname__}"

        if dump is None or load is None:
            default_dump, default_load = _default_converters(cls)
            dump = dump or default_dump
            load = load or default_load

        existing = self._by_tag.get(tag)
        if existing is not None and existing.cls is not cls:
            raise ValueError(f"tag {tag!r} already registered for {existing.cls!r}")

        reg = _Registration(tag=tag, cls=cls, dump=dump, load=load)
        self._by_tag[tag] = reg
        self._by_type[cls] = reg
        return cls

    def lookup_type(self, cls: type) -> _Registration | None:
        return self._by_type.get(cls)

    def lookup_tag(self, tag: str) -> _Registration | None:
        return self._by_tag.get(tag)

    def __contains__(self, cls: object) -> bool:
        return cls in self._by_type


def _default_converters(cls: type):
    if isinstance(cls, type) and issubclass(cls, BaseModel):
        return (
            lambda obj: {name: getattr(obj, name) for name in type(obj).model_fields},
            cls.model_validate,
        )
    if dataclasses.is_dataclass(cls):
        return (
            lambda obj: {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)},
            lambda fields: cls(**fields),
        )
    raise TypeError(
        f"cannot infer converters for {cls.__name__}; pass dump= and load="
    )


default_registry = TypeRegistry()


def register_type(
    cls: type | None = None,
    tag: str | None = None,
    *,
    dump: Callable[[Any], dict[str, Any]] | None = None,
    load: Callable[[dict[str, Any]], Any] | None = None,
):
    """Register a structured type with the default registry.

    Usable directly (``register_type(User)``) or as a class decorator,
    with or without arguments.
    """
    if cls is None:
        return lambda c: default_registry.register(c, tag, dump=dump, load=load)
    return default_registry.register(cls, tag, dump=dump, load=load)


# ── JSON codec ────────────────────────────────────────────────────────────


class JSONCodec:
    """Tagged-JSON codec. The default for SessionManager."""

    def __init__(self, registry: TypeRegistry | None = None) -> None:
        self.registry = registry or default_registry

    def encode(self, deadline: datetime, values: dict[str, Any]) -> bytes:
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        envelope = {
            "deadline": deadline.isoformat(),
            "values": {key: self._encode_value(val) for key, val in values.items()},
        }
        try:
            return json.dumps(envelope, separators=(",", ":")).encode()
        except ValueError as e:
            raise EncodeError(str(e)) from e

    def decode(self, data: bytes) -> tuple[datetime, dict[str, Any]]:
        try:
            envelope = json.loads(data)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(f"malformed session blob: {e}") from e

        if not isinstance(envelope, dict):
            raise DecodeError("malformed session blob: envelope is not an object")
        try:
            deadline = datetime.fromisoformat(envelope["deadline"])
            raw_values = envelope.get("values") or {}
            values = {key: self._decode_value(val) for key, val in raw_values.items()}
        except DecodeError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DecodeError(f"malformed session blob: {e!r}") from e

        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        return deadline, values

    def _encode_value(self, value: Any) -> dict[str, Any]:
        if value is None:
            return {"t": "none"}
        # bool before int: bool is an int subclass
        if isinstance(value, bool):
            return {"t": "bool", "v": value}
        if isinstance(value, int):
            return {"t": "int", "v": value}
        if isinstance(value, float):
            return {"t": "float", "v": value}
        if isinstance(value, str):
            return {"t": "str", "v": value}
        if isinstance(value, (bytes, bytearray)):
            return {"t": "bytes", "v": base64.b64encode(value).decode()}
        if isinstance(value, datetime):
            return {"t": "datetime", "v": value.isoformat()}
        if isinstance(value, list):
            return {"t": "list", "v": [self._encode_value(v) for v in value]}
        if isinstance(value, tuple):
            return {"t": "tuple", "v": [self._encode_value(v) for v in value]}
        if isinstance(value, dict):
            for k in value:
                if not isinstance(k, str):
                    raise EncodeError(f"dict keys must be str, got {type(k).__name__}")
            return {"t": "dict", "v": {k: self._encode_value(v) for k, v in value.items()}}

        reg = self.registry.lookup_type(type(value))
        if reg is None:
            raise EncodeError(
                f"unsupported type {type(value).__name__}; register it with register_type()"
            )
        fields = reg.dump(value)
        return {
            "t": "object",
            "type": reg.tag,
            "v": {k: self._encode_value(v) for k, v in fields.items()},
        }

    def _decode_value(self, item: dict[str, Any]) -> Any:
        kind = item["t"]
        if kind == "none":
            return None
        if kind in ("bool", "int", "float", "str"):
            value = item["v"]
            expected = {"bool": bool, "int": int, "float": (int, float), "str": str}[kind]
            if not isinstance(value, expected) or (kind == "int" and isinstance(value, bool)):
                raise DecodeError(f"malformed {kind} value: {value!r}")
            return float(value) if kind == "float" else value
        if kind == "bytes":
            try:
                return base64.b64decode(item["v"], validate=True)
            except binascii.Error as e:
                raise DecodeError(f"malformed bytes value: {e}") from e
        if kind == "datetime":
            return datetime.fromisoformat(item["v"])
        if kind == "list":
            return [self._decode_value(v) for v in item["v"]]
        if kind == "tuple":
            return tuple(self._decode_value(v) for v in item["v"])
        if kind == "dict":
            return {k: self._decode_value(v) for k, v in item["v"].items()}
        if kind == "object":
            reg = self.registry.lookup_tag(item["type"])
            if reg is None:
                raise DecodeError(f"unregistered type tag {item['type']!r}")
            fields = {k: self._decode_value(v) for k, v in item["v"].items()}
            return reg.load(fields)
        raise DecodeError(f"unknown value tag {kind!r}")
