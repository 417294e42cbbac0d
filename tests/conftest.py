"""
Pytest configuration: default runs most tests; use --run-slow to include slow tests.

Also provides a scripted in-memory transport and PNG helpers shared by the
resolver, orchestrator and CLI tests.
"""

import base64
import io
import json
from collections.abc import Callable
from typing import Any

import pytest
from PIL import Image

from sdmaterial.core.config import ServerConfig
from sdmaterial.core.transport import Response


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests (live server generation). Default: skip them.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-slow", False):
        return
    skip_slow = pytest.mark.skip(reason="Slow test; run with --run-slow to include")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


def png_bytes(size: tuple[int, int] = (1, 1), color: tuple[int, int, int] = (0, 0, 0)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color=color).save(buf, format="PNG")
    return buf.getvalue()


def json_response(data: Any, status_code: int = 200) -> Response:
    return Response(status_code=status_code, text=json.dumps(data))


class FakeTransport:
    """
    Transport double keyed by (method, url).

    A route value may be a Response, an exception instance (raised), a list
    (consumed one item per call) or a callable taking the JSON body.
    """

    def __init__(self, config: ServerConfig) -> None:
        self.config = config
        self.routes: dict[tuple[str, str], Any] = {}
        self.calls: list[tuple[str, str, dict | None]] = []

    def route(self, method: str, path: str, handler: Any) -> None:
        self.routes[(method, self.config.url(path))] = handler

    def urls_called(self, method: str | None = None) -> list[str]:
        return [url for m, url, _ in self.calls if method is None or m == method]

    def send(
        self,
        method: str,
        url: str,
        *,
        body: dict | None = None,
        timeout: float | None = None,
    ) -> Response:
        self.calls.append((method, url, body))
        handler = self.routes.get((method, url))
        if handler is None:
            raise AssertionError(f"Unexpected request {method} {url}")
        if isinstance(handler, list):
            handler = handler.pop(0) if len(handler) > 1 else handler[0]
        if isinstance(handler, BaseException):
            raise handler
        if callable(handler):
            return handler(body)
        return handler


@pytest.fixture
def server_config(tmp_path) -> ServerConfig:
    """Config pointing at a fake server with output under tmp_path and fast polling."""
    return ServerConfig(
        base_url="http://sd.test:7860",
        output_root=str(tmp_path),
        poll_interval=0.01,
    )


@pytest.fixture
def fake_transport(server_config: ServerConfig) -> FakeTransport:
    return FakeTransport(server_config)


@pytest.fixture
def make_png_b64() -> Callable[..., str]:
    def _make(size: tuple[int, int] = (1, 1), color: tuple[int, int, int] = (0, 0, 0)) -> str:
        return base64.b64encode(png_bytes(size, color)).decode("ascii")

    return _make


@pytest.fixture
def make_json_response() -> Callable[..., Response]:
    return json_response
