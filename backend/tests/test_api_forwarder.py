"""Tests for the OpenAI-style REST forwarder."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.services.api_forwarder import APIRequestForwarder, filter_headers
from app.services.live_relay import APIForwardingError


def _mock_async_client(mock_client_cls):
    mock_client = AsyncMock()
    mock_client_cls.return_value.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client_cls.return_value.__aexit__ = AsyncMock(return_value=False)
    return mock_client


# ---------------------------------------------------------------------------
# Path matching
# ---------------------------------------------------------------------------


class TestMatches:
    @pytest.mark.parametrize("path", ["/v1/chat/completions", "/v1/embeddings", "/v1/models", "/models"])
    def test_api_paths(self, path):
        assert APIRequestForwarder.matches(path) is True

    @pytest.mark.parametrize("path", ["/", "/index.html", "/v1/models/gemini", "/js/app.js"])
    def test_other_paths(self, path):
        assert APIRequestForwarder.matches(path) is False


class TestFilterHeaders:
    def test_hop_by_hop_headers_removed(self):
        headers = {
            "Host": "relay.test",
            "Connection": "keep-alive",
            "Content-Length": "12",
            "Authorization": "Bearer sk-1",
            "content-type": "application/json",
        }
        assert filter_headers(headers) == {"Authorization": "Bearer sk-1", "content-type": "application/json"}


# ---------------------------------------------------------------------------
# Forwarding
# ---------------------------------------------------------------------------


class TestForward:
    @pytest.mark.asyncio
    async def test_unconfigured_forwarder_is_unavailable(self):
        forwarder = APIRequestForwarder(base_url="")
        with pytest.raises(APIForwardingError) as exc_info:
            await forwarder.forward("POST", "/v1/chat/completions", "", {}, b"{}")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_successful_forward(self):
        forwarder = APIRequestForwarder(base_url="http://translator.test/", timeout=5.0)

        with patch("app.services.api_forwarder.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_async_client(mock_client_cls)
            mock_resp = MagicMock()
            mock_resp.status_code = 200
            mock_resp.content = b'{"object": "list"}'
            mock_resp.headers = {"content-type": "application/json", "transfer-encoding": "chunked"}
            mock_client.request.return_value = mock_resp

            result = await forwarder.forward(
                "POST",
                "/v1/chat/completions",
                "alt=json",
                {"authorization": "Bearer sk-1", "host": "relay.test"},
                b'{"model": "gemini"}',
            )

        mock_client_cls.assert_called_once_with(timeout=5.0)
        mock_client.request.assert_awaited_once_with(
            "POST",
            "http://translator.test/v1/chat/completions?alt=json",
            content=b'{"model": "gemini"}',
            headers={"authorization": "Bearer sk-1"},
        )
        assert result.status_code == 200
        assert result.content == b'{"object": "list"}'
        assert result.headers == {"content-type": "application/json"}

    @pytest.mark.asyncio
    async def test_upstream_error_status_is_passed_through(self):
        forwarder = APIRequestForwarder(base_url="http://translator.test")

        with patch("app.services.api_forwarder.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_async_client(mock_client_cls)
            mock_resp = MagicMock()
            mock_resp.status_code = 401
            mock_resp.content = b"bad key"
            mock_resp.headers = {"content-type": "text/plain"}
            mock_client.request.return_value = mock_resp

            result = await forwarder.forward("GET", "/v1/models", "", {}, b"")

        assert result.status_code == 401
        assert mock_client.request.await_args.kwargs["content"] is None

    @pytest.mark.asyncio
    async def test_transport_failure_is_bad_gateway(self):
        forwarder = APIRequestForwarder(base_url="http://translator.test")

        with patch("app.services.api_forwarder.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_async_client(mock_client_cls)
            mock_client.request.side_effect = httpx.ConnectError("connection refused")

            with pytest.raises(APIForwardingError, match="connection refused") as exc_info:
                await forwarder.forward("GET", "/v1/models", "", {}, b"")

        assert exc_info.value.status_code == 502
