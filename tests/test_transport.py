import asyncio

import pytest
from aiohttp import test_utils, web

from cardforge.errors import HTTPStatusError, MalformedResponseError, TransportError
from cardforge.transport import (
    LiveTransport,
    SimulatedTransport,
    TutorialConfig,
    decode_payload,
    encode_payload,
    error_detail,
    select_transport,
)


async def _serve(app, scenario):
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        return await scenario(server)
    finally:
        await server.close()


def test_encode_payload_rejects_unserializable_values():
    assert encode_payload({"prompt": "dragon"}) == b'{"prompt": "dragon"}'
    with pytest.raises(TransportError):
        encode_payload({"prompt": object()})


def test_decode_payload_reports_malformed_bodies():
    assert decode_payload(b'{"ok": true}') == {"ok": True}
    with pytest.raises(MalformedResponseError):
        decode_payload(b"not json")


def test_error_detail_prefers_server_detail():
    assert error_detail(400, "Bad Request", b'{"detail": "Description too short"}') == "Description too short"
    assert error_detail(400, "Bad Request", b'{"detail": ["a", "b"]}') == "Server returned 400: Bad Request"
    assert error_detail(502, "Bad Gateway", b"<html></html>") == "Server returned 502: Bad Gateway"


def test_live_transport_posts_json_and_keeps_cookies():
    seen = []

    async def login(request):
        response = web.json_response({"name": "first"})
        response.set_cookie("session", "abc123")
        return response

    async def generate(request):
        seen.append((request.headers.get("Content-Type"), request.cookies.get("session"), await request.json()))
        return web.json_response({"name": "Ancient Red Dragon"})

    app = web.Application()
    app.router.add_post("/login", login)
    app.router.add_post("/generate", generate)

    async def scenario(server):
        transport = LiveTransport(str(server.make_url("/login")))
        try:
            await transport.submit({})
            child = transport.with_endpoint(str(server.make_url("/generate")))
            return await child.submit({"prompt": "dragon"})
        finally:
            await transport.close()

    result = asyncio.run(_serve(app, scenario))

    assert result == {"name": "Ancient Red Dragon"}
    assert seen == [("application/json", "abc123", {"prompt": "dragon"})]


def test_live_transport_raises_status_errors():
    async def handler(request):
        return web.json_response({"detail": "Please log in"}, status=401)

    app = web.Application()
    app.router.add_post("/generate", handler)

    async def scenario(server):
        transport = LiveTransport(str(server.make_url("/generate")))
        try:
            with pytest.raises(HTTPStatusError) as excinfo:
                await transport.submit({"prompt": "dragon"})
            return excinfo.value
        finally:
            await transport.close()

    error = asyncio.run(_serve(app, scenario))

    assert error.status == 401
    assert error.detail == "Please log in"


def test_with_same_endpoint_returns_self():
    transport = LiveTransport("http://localhost:7860/api/generate")

    assert transport.with_endpoint("http://localhost:7860/api/generate") is transport


def test_live_transport_requires_endpoint():
    with pytest.raises(ValueError):
        LiveTransport("")


def test_simulated_transport_waits_then_returns_mock_copy():
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    mock = {"name": "Tutorial Goblin"}
    transport = SimulatedTransport(TutorialConfig(mock_data=mock, simulated_duration_ms=1500), sleep=fake_sleep)

    result = asyncio.run(transport.submit())

    assert delays == [1.5]
    assert result == mock
    assert result is not mock


def test_simulated_transport_falls_back_to_empty_record(caplog):
    async def fake_sleep(seconds):
        return None

    transport = SimulatedTransport(TutorialConfig(simulated_duration_ms=0), sleep=fake_sleep)

    with caplog.at_level("WARNING"):
        result = asyncio.run(transport.submit())

    assert result == {}
    assert any("no mock_data" in message for message in caplog.messages)


def test_tutorial_config_rejects_negative_duration():
    with pytest.raises(ValueError):
        TutorialConfig(simulated_duration_ms=-1)


def test_select_transport_prefers_simulation_only_when_configured():
    live = LiveTransport("http://localhost:7860/api/generate")
    tutorial = TutorialConfig(mock_data={"name": "x"})

    assert select_transport(tutorial_enabled=True, tutorial=tutorial, live=lambda: live).mode == "simulated"
    assert select_transport(tutorial_enabled=True, tutorial=None, live=lambda: live) is live
    assert select_transport(tutorial_enabled=False, tutorial=tutorial, live=lambda: live) is live
