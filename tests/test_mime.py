"""Tests for raw Gmail message construction and transport encoding."""

from __future__ import annotations

import base64

from src.app.dispatch.mime import (
    build_gmail_raw,
    build_raw_message,
    decode_raw_message,
    encode_raw_message,
)
from src.app.orchestration.schemas import BodyContentType, EmailPayload


class TestBuildRawMessage:
    def test_header_order_and_crlf(self):
        message = build_raw_message("bob@acme.com", "Recap", "<p>Hi</p>")

        assert message == (
            "To: bob@acme.com\r\n"
            "Subject: Recap\r\n"
            "Content-Type: text/html; charset=utf-8\r\n"
            "MIME-Version: 1.0\r\n"
            "\r\n"
            "<p>Hi</p>"
        )

    def test_text_body_uses_text_plain(self):
        message = build_raw_message("bob@acme.com", "Recap", "Hi", BodyContentType.TEXT)
        assert "Content-Type: text/plain; charset=utf-8\r\n" in message

    def test_multiline_subject_is_folded_to_one_line(self):
        message = build_raw_message("bob@acme.com", "Line one\nLine two", "x")
        assert "Subject: Line one Line two\r\n" in message


class TestEncoding:
    def test_encoding_is_url_safe_and_unpadded(self):
        # Bytes chosen so standard base64 would produce '+', '/' and padding
        raw = encode_raw_message("ÿþ?>a")
        assert raw == "w7_Dvj8-YQ"
        assert "+" not in raw
        assert "/" not in raw
        assert not raw.endswith("=")

    def test_decode_reproduces_headers_and_body(self):
        payload = EmailPayload.model_validate(
            {
                "to": "zoë@acme.com",
                "subject": "Résumé: Q3 ✓",
                "body": {"contentType": "HTML", "content": "<ul>\r\n<li>Déjà vu</li></ul>"},
            }
        )

        decoded = decode_raw_message(build_gmail_raw(payload))
        headers, body = decoded.split("\r\n\r\n", 1)

        assert headers.split("\r\n") == [
            "To: zoë@acme.com",
            "Subject: Résumé: Q3 ✓",
            "Content-Type: text/html; charset=utf-8",
            "MIME-Version: 1.0",
        ]
        assert body == "<ul>\r\n<li>Déjà vu</li></ul>"

    def test_matches_standard_urlsafe_base64(self):
        message = build_raw_message("bob@acme.com", "Recap", "Hello")
        expected = base64.urlsafe_b64encode(message.encode("utf-8")).decode("ascii").rstrip("=")
        assert encode_raw_message(message) == expected
