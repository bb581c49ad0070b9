"""Streams of change events for a resource type.

A watch does not reconnect by itself: once it fails, start a new one.
"""

from __future__ import annotations

import codecs
import enum
import json
import struct
from collections.abc import Iterator
from typing import Any

import httpx

from .client import Client, ClientError
from .codec import (
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_PB,
    MAGIC_BYTES,
    CodecError,
    _iter_fields,
    content_type_for,
    decode_unknown,
    marshal_pb,
)
from .errors import APIError, _decode_status_pb, new_api_error
from .meta import Status
from .resource import Option, resource_watch_url

_WIRE_BYTES = 2
_JSON = json.JSONDecoder()


class EventType(str, enum.Enum):
    """The kinds of event a watch reports."""

    ADDED = "ADDED"
    DELETED = "DELETED"
    MODIFIED = "MODIFIED"
    ERROR = "ERROR"


class WatchError(Exception):
    """A watch stream failed; the watcher must be recreated."""


def _event_type(value: str) -> EventType | str:
    try:
        return EventType(value)
    except ValueError:
        return value


def _build(cls: Any, value: Any) -> Any:
    from_dict = getattr(cls, "from_dict", None)
    try:
        return from_dict(value) if callable(from_dict) else cls(value)
    except (TypeError, ValueError, KeyError) as exc:
        raise WatchError(f"decode resource: {exc}") from exc


def _api_error(status: Status) -> APIError:
    return APIError(status, status.code if status.code is not None else 0)


def parse_unknown(data: bytes) -> bytes:
    """Strip the protobuf envelope of an embedded object and return its payload."""
    if not bytes(data).startswith(MAGIC_BYTES):
        raise WatchError("bytes did not start with expected prefix")
    try:
        return decode_unknown(data[len(MAGIC_BYTES):])
    except CodecError as exc:
        raise WatchError(str(exc)) from exc


class _Stream:
    """Incremental reads over the chunks of a streamed response body."""

    def __init__(self, chunks: Iterator[bytes]) -> None:
        self._chunks = chunks
        self.done = False

    def chunk(self) -> bytes:
        try:
            return next(self._chunks)
        except StopIteration:
            self.done = True
            return b""
        except httpx.HTTPError as exc:
            raise WatchError(f"read stream: {exc}") from exc


class _JSONEvents:
    def __init__(self, stream: _Stream) -> None:
        self._stream = stream
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""

    def _fill(self) -> None:
        data = self._stream.chunk()
        try:
            self._buffer += self._decoder.decode(data, final=self._stream.done)
        except UnicodeDecodeError as exc:
            raise WatchError(f"decode event: {exc}") from exc

    def next_value(self) -> Any:
        while True:
            self._buffer = self._buffer.lstrip()
            if self._buffer:
                try:
                    value, end = _JSON.raw_decode(self._buffer)
                except json.JSONDecodeError as exc:
                    if self._stream.done:
                        raise WatchError(f"decode event: {exc}") from exc
                else:
                    self._buffer = self._buffer[end:]
                    return value
            elif self._stream.done:
                raise WatchError("decode event: EOF")
            self._fill()


class _Frames:
    def __init__(self, stream: _Stream) -> None:
        self._stream = stream
        self._buffer = bytearray()

    def _read(self, size: int) -> bytes:
        while len(self._buffer) < size and not self._stream.done:
            self._buffer += self._stream.chunk()
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def next_frame(self) -> bytes:
        header = self._read(4)
        if not header:
            raise WatchError("EOF")
        if len(header) < 4:
            raise WatchError("unexpected EOF")
        (length,) = struct.unpack(">I", header)
        body = self._read(length)
        if len(body) < length:
            raise WatchError("read frame body: unexpected EOF")
        return body


def _text(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise WatchError(f"invalid string: {exc}") from exc


def _decode_watch_event(body: bytes) -> tuple[str, bytes]:
    event_type = ""
    obj: bytes | None = None
    try:
        for number, wire, value in _iter_fields(body):
            if wire != _WIRE_BYTES:
                continue
            if number == 1:
                event_type = _text(value)
            elif number == 2:
                obj = value
        if obj is None:
            raise WatchError("event had no underlying object")
        raw = b""
        for number, wire, value in _iter_fields(obj):
            if number == 1 and wire == _WIRE_BYTES:
                raw = value
    except CodecError as exc:
        raise WatchError(str(exc)) from exc
    return event_type, parse_unknown(raw)


class Watcher:
    """Decodes events from one watch connection."""

    def __init__(self, response: httpx.Response, protobuf: bool) -> None:
        self._response = response
        self._protobuf = protobuf
        stream = _Stream(response.iter_bytes())
        self._json = _JSONEvents(stream)
        self._frames = _Frames(stream)

    def __enter__(self) -> Watcher:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def next(self, cls: Any) -> tuple[EventType | str, Any]:
        """Return the next event type and the object, decoded as cls.

        An ERROR event is raised as an APIError. Any failure is final.
        """
        if self._protobuf:
            return self._next_pb(cls)
        return self._next_json(cls)

    def close(self) -> None:
        """Close the connection to the API server."""
        self._response.close()

    def _next_json(self, cls: Any) -> tuple[EventType | str, Any]:
        event = self._json.next_value()
        if not isinstance(event, dict):
            raise WatchError(f"decode event: expected an object, got {type(event).__name__}")
        event_type = event.get("type")
        if not event_type:
            raise WatchError("watch event had no type field")
        obj = event.get("object")
        if event_type == EventType.ERROR:
            try:
                status = Status.from_dict(obj)
            except ValueError as exc:
                raise WatchError(f"decoding event error: {exc}") from exc
            raise _api_error(status)
        return _event_type(event_type), _build(cls, obj)

    def _next_pb(self, cls: Any) -> tuple[EventType | str, Any]:
        if content_type_for(cls) != CONTENT_TYPE_PB:
            raise WatchError("object was not a protobuf message")
        event_type, raw = _decode_watch_event(self._frames.next_frame())
        if not event_type:
            raise WatchError("watch event had no type field")
        if event_type == EventType.ERROR:
            try:
                status = _decode_status_pb(marshal_pb(raw))
            except CodecError as exc:
                raise WatchError(f"decoding event error: {exc}") from exc
            raise _api_error(status)
        message = cls()
        try:
            message.ParseFromString(raw)
        except Exception as exc:
            raise WatchError(f"decode resource: {exc}") from exc
        return _event_type(event_type), message


def watch(client: Client, namespace: str, cls: Any, *args: Option) -> Watcher:
    """Start watching resources of type cls; an empty namespace watches all."""
    url = resource_watch_url(client.endpoint, namespace, cls, *args)
    content_type = content_type_for(cls)
    request = client.http.build_request("GET", url, headers={"Accept": content_type})
    if client.set_headers is not None:
        client.set_headers(request.headers)
    try:
        response = client.http.send(request, stream=True)
    except httpx.HTTPError as exc:
        raise ClientError(f"performing request: {exc}") from exc

    if response.status_code // 100 != 2:
        try:
            body = response.read()
        finally:
            response.close()
        raise new_api_error(response.headers.get("Content-Type", ""), response.status_code, body)

    return Watcher(response, protobuf=content_type == CONTENT_TYPE_PB)


__all__ = [
    "CONTENT_TYPE_JSON",
    "EventType",
    "WatchError",
    "Watcher",
    "parse_unknown",
    "watch",
]