from unittest.mock import AsyncMock, MagicMock, patch

from app.main import app as fastapi_app
from app.services.api_forwarder import APIRequestForwarder


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_root_serves_console(client):
    """Static router is mounted: / serves index.html."""
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "<h1>console</h1>"
    assert response.headers["content-type"] == "text/html;charset=UTF-8"


def test_missing_static_file(client):
    response = client.get("/missing.js")
    assert response.status_code == 404
    assert response.text == "Not Found"
    assert response.headers["content-type"] == "text/plain;charset=UTF-8"


def test_api_path_without_proxy_is_unavailable(client):
    """API paths are routed to the forwarder, which is unconfigured in tests."""
    response = client.post("/v1/chat/completions", json={"model": "gemini"})
    assert response.status_code == 503
    assert response.text == "API proxy is not configured"
    assert response.headers["content-type"] == "text/plain;charset=UTF-8"


def test_api_path_is_forwarded(client):
    fastapi_app.state.api_forwarder = APIRequestForwarder(base_url="http://translator.test")

    with patch("app.services.api_forwarder.httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client_cls.return_value.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client_cls.return_value.__aexit__ = AsyncMock(return_value=False)

        mock_resp = MagicMock()
        mock_resp.status_code = 200
        mock_resp.content = b'{"data": []}'
        mock_resp.headers = {"content-type": "application/json"}
        mock_client.request.return_value = mock_resp

        response = client.get("/v1/models?pageSize=5")

    assert response.status_code == 200
    assert response.json() == {"data": []}
    url = mock_client.request.await_args.args[1]
    assert url == "http://translator.test/v1/models?pageSize=5"


def test_static_paths_only_answer_get_and_head(client):
    response = client.post("/index.html", content=b"payload")
    assert response.status_code == 405
    assert response.text == "Method Not Allowed"
    assert response.headers["allow"] == "GET, HEAD"

    head = client.head("/")
    assert head.status_code == 200
    assert head.headers["content-type"] == "text/html;charset=UTF-8"
