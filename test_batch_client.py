#!/usr/bin/env python3
"""
Tests for BatchClient

Most tests drive the client with a fake aiohttp session that records every
request; one test runs against a real aiohttp application.
"""

import asyncio
from datetime import datetime, timezone

import aiohttp
import pytest
from aiohttp import web
from aiohttp import test_utils

from influx_writer import BatchClient, ClientConfig, Point, WriteResult, field, measurement, timestamp
from influx_writer.errors import ConfigError, ValidationError, WriteError


class FakeResponse:
    def __init__(self, status: int, body: str = ""):
        self.status = status
        self._body = body

    async def text(self, errors="strict"):
        return self._body


class FakeRequest:
    def __init__(self, response=None, error=None):
        self._response = response
        self._error = error

    async def __aenter__(self):
        if self._error is not None:
            raise self._error
        return self._response

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession.post"""

    def __init__(self, status: int = 204, body: str = "", error=None):
        self.status = status
        self.body = body
        self.error = error
        self.calls = []
        self.closed = False

    def post(self, url, data=None, headers=None, **kwargs):
        self.calls.append({"url": url, "data": data, "headers": headers})
        return FakeRequest(FakeResponse(self.status, self.body), self.error)

    async def close(self):
        self.closed = True


def make_points(n):
    return [
        Point("cpu").tag("host", f"server{i:02d}").field("usage", i * 0.5).time(1000 + i)
        for i in range(n)
    ]


def test_batch_is_sent_in_one_request_with_lines_in_order():
    session = FakeSession()
    client = BatchClient("http://localhost:8086", "metrics", session=session)

    result = asyncio.run(client.add_data(make_points(3)))

    assert result == WriteResult(status=204, line_count=3, body="")
    assert len(session.calls) == 1
    call = session.calls[0]
    assert call["url"] == "http://localhost:8086/write?db=metrics"
    assert call["data"].decode("utf-8").split("\n") == [
        "cpu,host=server00 usage=0 1000",
        "cpu,host=server01 usage=0.5 1001",
        "cpu,host=server02 usage=1 1002",
    ]
    assert call["headers"]["Content-Type"] == "text/plain; charset=utf-8"


def test_single_measurement_is_accepted():
    session = FakeSession()
    client = BatchClient("http://localhost:8086", "metrics", session=session)

    result = asyncio.run(client.add_data(Point("mem").field("used", 10)))

    assert result.line_count == 1
    assert session.calls[0]["data"] == b"mem used=10i"


def test_non_success_status_raises_write_error_without_retry():
    session = FakeSession(status=400, body='{"error":"unable to parse"}')
    client = BatchClient("http://localhost:8086", "metrics", session=session)

    with pytest.raises(WriteError) as exc_info:
        asyncio.run(client.add_data(make_points(2)))

    assert exc_info.value.status == 400
    assert exc_info.value.body == '{"error":"unable to parse"}'
    assert not exc_info.value.is_transport_error
    assert len(session.calls) == 1


def test_server_error_raises_write_error():
    session = FakeSession(status=503, body="overloaded")
    client = BatchClient("http://localhost:8086", "metrics", session=session)

    with pytest.raises(WriteError, match="HTTP 503"):
        asyncio.run(client.add_data(make_points(1)))
    assert len(session.calls) == 1


def test_transport_failure_raises_write_error_with_cause():
    cause = aiohttp.ClientConnectionError("connection refused")
    session = FakeSession(error=cause)
    client = BatchClient("http://localhost:8086", "metrics", session=session)

    with pytest.raises(WriteError) as exc_info:
        asyncio.run(client.add_data(make_points(1)))

    assert exc_info.value.is_transport_error
    assert exc_info.value.cause is cause
    assert exc_info.value.__cause__ is cause
    assert len(session.calls) == 1


def test_timeout_raises_write_error():
    session = FakeSession(error=asyncio.TimeoutError())
    client = BatchClient("http://localhost:8086", "metrics", session=session)

    with pytest.raises(WriteError):
        asyncio.run(client.add_data(make_points(1)))


@pytest.mark.parametrize("url", [
    "not a url",
    "localhost:8086",
    "ftp://localhost:8086",
    "http://",
    "http://localhost:notaport",
])
def test_unparseable_url_fails_construction(url):
    with pytest.raises(ConfigError):
        BatchClient(url, "metrics")


def test_invalid_url_makes_no_request():
    session = FakeSession()
    with pytest.raises(ConfigError):
        BatchClient("::not-a-url::", "metrics", session=session)
    assert session.calls == []


def test_blank_database_fails_construction():
    with pytest.raises(ConfigError):
        BatchClient("http://localhost:8086", "")
    with pytest.raises(ConfigError):
        BatchClient("http://localhost:8086", "   ")


def test_invalid_record_fails_before_sending():
    session = FakeSession()
    client = BatchClient("http://localhost:8086", "metrics", session=session)
    batch = make_points(2) + [Point("cpu").tag("host", "a")]

    with pytest.raises(ValidationError):
        asyncio.run(client.add_data(batch))
    assert session.calls == []


def test_empty_batch_and_foreign_items_rejected():
    session = FakeSession()
    client = BatchClient("http://localhost:8086", "metrics", session=session)

    with pytest.raises(ValidationError):
        asyncio.run(client.add_data([]))
    with pytest.raises(ValidationError, match="does not implement Measurement"):
        asyncio.run(client.add_data([{"measurement": "cpu"}]))
    assert session.calls == []


def test_write_url_keeps_base_path_and_encodes_query():
    client = BatchClient("http://influx.local:8086/proxy/", "my db", precision="ms")
    assert client.write_url == "http://influx.local:8086/proxy/write?db=my+db&precision=ms"


def test_from_config():
    config = ClientConfig(url="https://influx.example.com", database="metrics", precision="s")
    client = BatchClient.from_config(config)
    assert client.config == config
    assert client.write_url == "https://influx.example.com/write?db=metrics&precision=s"


def test_concurrent_writes_are_independent():
    session = FakeSession()
    client = BatchClient("http://localhost:8086", "metrics", session=session)

    async def write_both():
        return await asyncio.gather(
            client.add_data(make_points(2)),
            client.add_data(make_points(3)),
        )

    results = asyncio.run(write_both())
    assert [r.line_count for r in results] == [2, 3]
    assert len(session.calls) == 2


def test_injected_session_is_not_closed():
    session = FakeSession()

    async def scenario():
        async with BatchClient("http://localhost:8086", "metrics", session=session) as client:
            await client.add_data(make_points(1))

    asyncio.run(scenario())
    assert session.closed is False


def test_add_data_against_aiohttp_server():
    received = []

    async def handle_write(request):
        received.append((dict(request.query), await request.text()))
        if request.query.get("db") != "metrics":
            return web.json_response({"error": "database not found"}, status=404)
        return web.Response(status=204)

    async def scenario():
        app = web.Application()
        app.router.add_post("/write", handle_write)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            base_url = str(server.make_url("/"))
            async with BatchClient(base_url, "metrics", precision="s", timeout=10) as client:
                result = await client.add_data(make_points(2))

            missing = BatchClient(base_url, "missing")
            with pytest.raises(WriteError) as exc_info:
                await missing.add_data(make_points(1))
            return result, exc_info.value
        finally:
            await server.close()

    result, error = asyncio.run(scenario())

    assert result.status == 204
    assert result.line_count == 2
    assert received[0][0] == {"db": "metrics", "precision": "s"}
    assert received[0][1] == "cpu,host=server00 usage=0 1000\ncpu,host=server01 usage=0.5 1001"
    assert error.status == 404
    assert "database not found" in error.body


@measurement(precision="ms")
class Tick:
    n: int = field()
    at: datetime = timestamp()


def test_record_precision_must_match_client_precision():
    tick = Tick(n=1, at=datetime(2020, 1, 1, tzinfo=timezone.utc))

    session = FakeSession()
    client = BatchClient("http://localhost:8086", "metrics", session=session)
    with pytest.raises(ValidationError, match="precision 'ns'"):
        asyncio.run(client.add_data([tick]))
    assert session.calls == []

    client = BatchClient("http://localhost:8086", "metrics", precision="ms", session=session)
    asyncio.run(client.add_data([tick]))
    assert session.calls[0]["url"] == "http://localhost:8086/write?db=metrics&precision=ms"
    assert session.calls[0]["data"] == b"Tick n=1i 1577836800000"


def test_undecodable_error_body_still_raises_write_error():
    async def handle_write(request):
        return web.Response(status=502, body=b"\xff\xfe bad gateway", content_type="text/plain", charset="utf-8")

    async def scenario():
        app = web.Application()
        app.router.add_post("/write", handle_write)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            client = BatchClient(str(server.make_url("/")), "metrics")
            with pytest.raises(WriteError) as exc_info:
                await client.add_data(make_points(1))
            return exc_info.value
        finally:
            await server.close()

    error = asyncio.run(scenario())

    assert error.status == 502
    assert error.body.endswith(" bad gateway")
    assert "\ufffd" in error.body
