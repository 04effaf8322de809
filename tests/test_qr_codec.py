# tests/test_qr_codec.py
import base64
import io

from PIL import Image

from qr_attendance.models import AttendanceSession
from qr_attendance.services import CodePayloadCodec
from tests.conftest import ORIGIN


def open_png(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


def test_payload_is_plain_url(codec):
    assert codec.build_payload("abc-123") == f"{ORIGIN}/attendance/abc-123"


def test_origin_trailing_slash_dropped():
    codec = CodePayloadCodec(origin="https://chamada.example.com/")
    assert codec.build_payload("s1") == "https://chamada.example.com/attendance/s1"


def test_render_is_square_png_of_requested_size(codec):
    image = open_png(codec.render(codec.build_payload("s1")))
    assert image.format == "PNG"
    assert image.size == (256, 256)

    thumbnail = open_png(codec.render(codec.build_payload("s1"), size=codec.history_image_size))
    assert thumbnail.size == (160, 160)


def test_render_keeps_quiet_zone(codec):
    image = open_png(codec.render(codec.build_payload("s1"))).convert("L")
    assert image.getpixel((0, 0)) == 255
    assert image.getpixel((255, 255)) == 255


def test_render_is_deterministic(codec):
    payload = codec.build_payload("s1")
    assert codec.render(payload) == codec.render(payload)
    assert codec.render(payload) != codec.render(codec.build_payload("s2"))


def test_encode_prefers_stored_payload(codec):
    session = AttendanceSession(id="s1", code_payload="https://old-origin.example.com/attendance/s1")
    encoded = codec.encode(session)

    assert encoded.payload == "https://old-origin.example.com/attendance/s1"
    assert encoded.image == codec.render(encoded.payload)


def test_encode_builds_payload_when_missing(codec):
    session = AttendanceSession(id="s1", code_payload="")
    assert codec.encode(session).payload == f"{ORIGIN}/attendance/s1"


def test_data_url(codec):
    image = codec.render(codec.build_payload("s1"))
    data_url = CodePayloadCodec.to_data_url(image)

    assert data_url.startswith("data:image/png;base64,")
    assert base64.b64decode(data_url.split(",", 1)[1]) == image


def test_extract_session_id():
    assert CodePayloadCodec.extract_session_id(f"{ORIGIN}/attendance/s1") == "s1"
    assert CodePayloadCodec.extract_session_id(f"{ORIGIN}/attendance/s1/") == "s1"
    assert CodePayloadCodec.extract_session_id(f"{ORIGIN}/classes/s1") is None
    assert CodePayloadCodec.extract_session_id("not a url") is None
