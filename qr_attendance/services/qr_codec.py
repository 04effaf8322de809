# qr_attendance/services/qr_codec.py
"""
QR payload codec for attendance sessions.

The payload is a plain URL, `{origin}/attendance/{session_id}`. It carries no
signature and no expiry: every validity check happens server-side against the
session row. Rendering is deterministic, so re-encoding the payload of a
resumed session yields the same PNG bytes.
"""
import base64
import io
from typing import NamedTuple, Optional
from urllib.parse import urlparse

import qrcode
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q
from PIL import Image

from qr_attendance.core.config import get_qr_settings


ERROR_CORRECTION_LEVELS = {
    'L': ERROR_CORRECT_L,  # ~7% error correction
    'M': ERROR_CORRECT_M,  # ~15% error correction
    'Q': ERROR_CORRECT_Q,  # ~25% error correction
    'H': ERROR_CORRECT_H,  # ~30% error correction
}

ATTENDANCE_PATH = "attendance"


class EncodedSession(NamedTuple):
    payload: str
    image: bytes


class CodePayloadCodec:
    def __init__(
        self,
        origin: Optional[str] = None,
        image_size: Optional[int] = None,
        history_image_size: Optional[int] = None,
        border: Optional[int] = None,
        error_correction: Optional[str] = None
    ):
        qr_settings = get_qr_settings()
        self.origin = (origin or qr_settings["origin"]).rstrip('/')
        self.image_size = image_size or qr_settings["image_size"]
        self.history_image_size = history_image_size or qr_settings["history_image_size"]
        self.border = qr_settings["border"] if border is None else border
        self.error_correction = ERROR_CORRECTION_LEVELS[
            (error_correction or qr_settings["error_correction"]).upper()
        ]

    def build_payload(self, session_id: str) -> str:
        return f"{self.origin}/{ATTENDANCE_PATH}/{session_id}"

    def render(self, payload: str, size: Optional[int] = None) -> bytes:
        """Render the payload as a square PNG of `size` pixels"""
        size = size or self.image_size
        qr = qrcode.QRCode(
            version=None,
            error_correction=self.error_correction,
            box_size=1,
            border=self.border,
        )
        qr.add_data(payload)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white").get_image()
        img = img.convert("L").resize((size, size), Image.NEAREST)

        buffer = io.BytesIO()
        img.save(buffer, format="PNG", optimize=False)
        return buffer.getvalue()

    def encode(self, session) -> EncodedSession:
        """
        Payload and image for a session. A stored payload wins over a freshly
        built one so a resumed session shows exactly the code it was created with.
        """
        payload = session.code_payload or self.build_payload(session.id)
        return EncodedSession(payload=payload, image=self.render(payload))

    @staticmethod
    def to_data_url(image: bytes) -> str:
        return "data:image/png;base64," + base64.b64encode(image).decode("utf-8")

    @staticmethod
    def extract_session_id(payload: str) -> Optional[str]:
        """Session id from a payload URL, or None when it is not an attendance URL"""
        parts = [p for p in urlparse(payload).path.split('/') if p]
        if len(parts) >= 2 and parts[-2] == ATTENDANCE_PATH:
            return parts[-1]
        return None
