import textwrap

import pytest
from aiohttp.test_utils import unused_port

from proxxyy.config import RelayConfig
from proxxyy.proxy_core import ProxyServer
from proxxyy.request_store import RequestStore
from tools.echo_upstream import make_app as make_echo_app

CAPTURE_EPOCH = 1700000020


def write_catalog(path, text):
    path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")
    return path


@pytest.fixture
def dead_target():
    """A target URL nothing listens on"""
    return f"http://127.0.0.1:{unused_port()}"


@pytest.fixture
async def upstream(aiohttp_server):
    return await aiohttp_server(make_echo_app())


@pytest.fixture
def fixed_store(tmp_path):
    return RequestStore(str(tmp_path / "captures"), clock=lambda: CAPTURE_EPOCH)


@pytest.fixture
def make_relay(aiohttp_client):
    async def factory(target_url, request_store=None, **options):
        config = RelayConfig(target_url=target_url, **options)
        proxy = ProxyServer(config, request_store=request_store)
        client = await aiohttp_client(proxy.make_app())
        return proxy, client

    return factory
