import json

import pytest

from kubelite.codec import CONTENT_TYPE_JSON, CONTENT_TYPE_PB, CodecError, marshal_pb
from kubelite.errors import APIError, check_status_code, new_api_error
from kubelite.meta import Status

NOT_FOUND = {
    "kind": "Status",
    "apiVersion": "v1",
    "status": "Failure",
    "message": 'configmaps "i-dont-exist" not found',
    "reason": "NotFound",
    "code": 404,
}


def _status_pb(status: str, message: str, code: int) -> bytes:
    def field(number: int, text: str) -> bytes:
        data = text.encode()
        return bytes([(number << 3) | 2, len(data)]) + data

    varint = bytearray()
    value = code
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            varint.append(byte | 0x80)
        else:
            varint.append(byte)
            break
    return field(2, status) + field(3, message) + bytes([6 << 3]) + bytes(varint)


@pytest.mark.parametrize("code", [200, 201, 204, 299])
def test_success_codes_pass(code):
    assert check_status_code(CONTENT_TYPE_JSON, code, b"not json") is None


def test_not_found_json():
    body = json.dumps(NOT_FOUND).encode()
    with pytest.raises(APIError) as info:
        check_status_code(CONTENT_TYPE_JSON, 404, body)
    err = info.value
    assert err.code == 404
    assert err.status.reason == "NotFound"
    assert str(err) == 'kubernetes api: Failure 404 configmaps "i-dont-exist" not found'


def test_new_api_error_returns_error():
    body = json.dumps(NOT_FOUND).encode()
    err = new_api_error(CONTENT_TYPE_JSON, 409, body)
    assert err.code == 409
    assert err.status.code == 404


def test_undecodable_body():
    with pytest.raises(CodecError, match="decode error status 500"):
        check_status_code(CONTENT_TYPE_JSON, 500, b"<html>oops</html>")


def test_message_missing_falls_back_to_repr():
    err = new_api_error(CONTENT_TYPE_JSON, 500, b"{}")
    assert err.status == Status()
    assert "code=500" in str(err)
    assert not str(err).startswith("kubernetes api")


def test_protobuf_status():
    body = marshal_pb(_status_pb("Failure", "forbidden", 403))
    with pytest.raises(APIError) as info:
        check_status_code(CONTENT_TYPE_PB, 403, body)
    err = info.value
    assert err.status.status == "Failure"
    assert err.status.message == "forbidden"
    assert err.status.code == 403
    assert str(err) == "kubernetes api: Failure 403 forbidden"


def test_protobuf_without_magic():
    with pytest.raises(CodecError, match="decode error status 404"):
        new_api_error(CONTENT_TYPE_PB, 404, b"\x00\x01\x02\x03\x04")


def test_error_attributes_match_arguments():
    status = Status(status="Failure", message="gone")
    err = APIError(status, 410)
    assert err.status is status
    assert err.code == 410
    assert err.args == (status, 410)