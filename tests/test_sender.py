"""Tests for perch.server.sender response emission rules."""

from perch.http.response import Response
from perch.server.sender import send_response


class _Capture:
    def __init__(self) -> None:
        self.messages: list[dict] = []

    async def __call__(self, message: dict) -> None:
        self.messages.append(message)

    @property
    def headers(self) -> dict[bytes, bytes]:
        return dict(self.messages[0]["headers"])


class TestSendResponse:
    async def test_204_drops_body_and_content_length(self) -> None:
        send = _Capture()

        # A body attached by mistake is never sent with 204
        await send_response(Response("unexpected-body").with_status(204), send)

        assert send.messages[0]["type"] == "http.response.start"
        assert b"content-length" not in send.headers
        assert b"content-type" not in send.headers
        assert send.messages[1]["type"] == "http.response.body"
        assert send.messages[1]["body"] == b""

    async def test_200_preserves_body(self) -> None:
        send = _Capture()
        await send_response(Response("ok"), send)

        assert send.headers[b"content-length"] == b"2"
        assert send.headers[b"content-type"] == b"text/plain; charset=utf-8"
        assert send.messages[1]["body"] == b"ok"

    async def test_empty_201_has_no_content_type(self) -> None:
        send = _Capture()
        await send_response(Response(b"", status=201).with_header("Location", "/x"), send)

        assert send.headers[b"location"] == b"/x"
        assert send.headers[b"content-length"] == b"0"
        assert b"content-type" not in send.headers

    async def test_head_sends_headers_only(self) -> None:
        send = _Capture()
        await send_response(Response('{"a":1}', content_type="application/json"), send, head=True)

        assert send.headers[b"content-length"] == b"7"
        assert send.headers[b"content-type"] == b"application/json"
        assert send.messages[1]["body"] == b""
