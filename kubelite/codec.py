"""Encoding and decoding of API objects as JSON or Kubernetes protobuf."""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

CONTENT_TYPE_PB = "application/vnd.kubernetes.protobuf"
CONTENT_TYPE_JSON = "application/json"

MAGIC_BYTES = b"k8s\x00"

_RAW_FIELD = 2
_WIRE_VARINT = 0
_WIRE_FIXED64 = 1
_WIRE_BYTES = 2
_WIRE_FIXED32 = 5


class CodecError(ValueError):
    """An object could not be encoded or decoded."""


def _is_pb(obj: Any) -> bool:
    return callable(getattr(obj, "SerializeToString", None)) and callable(
        getattr(obj, "ParseFromString", None)
    )


def content_type_for(obj: Any) -> str:
    """Return the content type an object is exchanged in."""
    return CONTENT_TYPE_PB if _is_pb(obj) else CONTENT_TYPE_JSON


def marshal(obj: Any) -> tuple[str, bytes]:
    """Encode an object, preferring protobuf and falling back to JSON."""
    if _is_pb(obj):
        return CONTENT_TYPE_PB, marshal_pb(obj.SerializeToString())
    to_dict = getattr(obj, "to_dict", None)
    payload = to_dict() if callable(to_dict) else obj
    try:
        data = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise CodecError(str(exc)) from exc
    return CONTENT_TYPE_JSON, data


def unmarshal(data: bytes, content_type: str, cls: Any) -> Any:
    """Decode data of the given content type into an instance of cls."""
    is_pb = _is_pb(cls)
    if content_type == CONTENT_TYPE_PB and is_pb:
        try:
            raw = unmarshal_pb(data)
            message = cls()
            message.ParseFromString(raw)
        except Exception as exc:
            raise CodecError(f"decode protobuf: {exc}") from exc
        return message
    from_dict = getattr(cls, "from_dict", None)
    if is_pb and not callable(from_dict):
        raise CodecError(
            f"cannot decode json payload into protobuf object {getattr(cls, '__name__', cls)}"
        )
    try:
        parsed = json.loads(data)
    except (ValueError, UnicodeDecodeError) as exc:
        raise CodecError(f"decode json: {exc}") from exc
    if cls is None:
        return parsed
    try:
        return from_dict(parsed) if callable(from_dict) else cls(parsed)
    except (TypeError, ValueError, KeyError) as exc:
        raise CodecError(f"decode json: {exc}") from exc


def marshal_pb(raw: bytes) -> bytes:
    """Wrap a serialized protobuf message in the Kubernetes envelope."""
    return MAGIC_BYTES + encode_unknown(raw)


def unmarshal_pb(data: bytes) -> bytes:
    """Unwrap the Kubernetes envelope and return the inner message bytes."""
    if not bytes(data[: len(MAGIC_BYTES)]) == MAGIC_BYTES:
        raise CodecError("payload is not a kubernetes protobuf object")
    try:
        return decode_unknown(data[len(MAGIC_BYTES):])
    except CodecError as exc:
        raise CodecError(f"unmarshal unknown: {exc}") from exc


def _encode_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _read_varint(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise CodecError("unexpected end of varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
        if shift >= 64:
            raise CodecError("varint overflow")


def _take(data: bytes, pos: int, size: int) -> tuple[bytes, int]:
    end = pos + size
    if end > len(data):
        raise CodecError("unexpected end of field")
    return bytes(data[pos:end]), end


def _iter_fields(data: bytes) -> Iterator[tuple[int, int, Any]]:
    pos = 0
    while pos < len(data):
        key, pos = _read_varint(data, pos)
        number, wire = key >> 3, key & 0x7
        if number == 0:
            raise CodecError("illegal field number 0")
        if wire == _WIRE_VARINT:
            value, pos = _read_varint(data, pos)
        elif wire == _WIRE_FIXED64:
            value, pos = _take(data, pos, 8)
        elif wire == _WIRE_BYTES:
            length, pos = _read_varint(data, pos)
            value, pos = _take(data, pos, length)
        elif wire == _WIRE_FIXED32:
            value, pos = _take(data, pos, 4)
        else:
            raise CodecError(f"unsupported wire type {wire}")
        yield number, wire, value


def encode_unknown(raw: bytes) -> bytes:
    """Encode a runtime.Unknown message holding only its raw payload."""
    key = _encode_varint((_RAW_FIELD << 3) | _WIRE_BYTES)
    return key + _encode_varint(len(raw)) + bytes(raw)


def decode_unknown(data: bytes) -> bytes:
    """Decode a runtime.Unknown message and return its raw payload."""
    raw = b""
    for number, wire, value in _iter_fields(data):
        if number == _RAW_FIELD and wire == _WIRE_BYTES:
            raw = value
    return raw