"""Errors reported by the Kubernetes API server."""

from __future__ import annotations

from .codec import CONTENT_TYPE_PB, CodecError, _iter_fields, unmarshal, unmarshal_pb
from .meta import ListMeta, Status

_WIRE_VARINT = 0
_WIRE_BYTES = 2


class APIError(Exception):
    """The API server answered with an unexpected status code."""

    def __init__(self, status: Status | None, code: int) -> None:
        super().__init__(status, code)
        self.status = status
        # The HTTP status code; it can differ from status.code.
        self.code = code

    def __str__(self) -> str:
        status = self.status
        if status is not None and status.message is not None and status.status is not None:
            return f"kubernetes api: {status.status} {self.code} {status.message}"
        return f"APIError(status={status!r}, code={self.code})"


def _text(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CodecError(f"invalid string: {exc}") from exc


def _decode_list_meta(data: bytes) -> ListMeta:
    meta = ListMeta()
    for number, wire, value in _iter_fields(data):
        if wire != _WIRE_BYTES:
            continue
        if number == 1:
            meta.self_link = _text(value)
        elif number == 2:
            meta.resource_version = _text(value)
        elif number == 3:
            meta.continue_ = _text(value)
    return meta


def _decode_status_pb(body: bytes) -> Status:
    status = Status()
    for number, wire, value in _iter_fields(unmarshal_pb(body)):
        if wire == _WIRE_BYTES:
            if number == 1:
                status.metadata = _decode_list_meta(value)
            elif number == 2:
                status.status = _text(value)
            elif number == 3:
                status.message = _text(value)
            elif number == 4:
                status.reason = _text(value)
        elif wire == _WIRE_VARINT and number == 6:
            status.code = value - (1 << 64) if value >= 1 << 63 else value
    return status


def new_api_error(content_type: str, status_code: int, body: bytes) -> APIError:
    """Build the error for a failed response; raise CodecError if it is unreadable."""
    try:
        if content_type == CONTENT_TYPE_PB:
            status = _decode_status_pb(body)
        else:
            status = unmarshal(body, content_type, Status)
    except CodecError as exc:
        raise CodecError(f"decode error status {status_code}: {exc}") from exc
    return APIError(status, status_code)


def check_status_code(content_type: str, status_code: int, body: bytes) -> None:
    """Raise an APIError unless the status code is in the 2xx range."""
    if status_code // 100 == 2:
        return
    raise new_api_error(content_type, status_code, body)