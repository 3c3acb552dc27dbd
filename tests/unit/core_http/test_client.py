import pytest

from core_config import Settings
from core_http import client as http_client


def _no_global_settings():
    raise AssertionError("global settings must not be loaded when settings are passed in")


@pytest.mark.asyncio
async def test_shared_client_built_from_given_settings(monkeypatch):
    await http_client.aclose_http_client()
    monkeypatch.setattr(http_client, "get_settings", _no_global_settings)
    s = Settings(_env_file=None, BACKEND_TIMEOUT_MS=1500, HTTP_MAX_CONNECTIONS=7)
    try:
        c = http_client.get_http_client(settings=s)
        assert c.timeout.read == 1.5
        # Reuse never rebuilds settings.
        assert http_client.get_http_client() is c
    finally:
        await http_client.aclose_http_client()


@pytest.mark.asyncio
async def test_closed_client_is_replaced():
    s = Settings(_env_file=None)
    first = http_client.get_http_client(settings=s)
    await http_client.aclose_http_client()
    try:
        second = http_client.get_http_client(settings=s)
        assert second is not first and not second.is_closed
    finally:
        await http_client.aclose_http_client()
