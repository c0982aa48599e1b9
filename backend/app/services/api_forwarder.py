"""API request forwarder — passes OpenAI-style HTTP calls to a translation service.

Requests whose path ends in one of API_SUFFIXES are forwarded as-is (method,
path, query, body, end-to-end headers) to API_PROXY_BASE_URL. The response
status, body and end-to-end headers come back unchanged.
"""

import logging
from dataclasses import dataclass, field

import httpx

from app.services.live_relay.exceptions import APIForwardingError

logger = logging.getLogger(__name__)

API_SUFFIXES = ("/chat/completions", "/embeddings", "/models")

# Connection-scoped headers that must not be relayed (RFC 9110 section 7.6.1),
# plus the ones httpx recomputes for the outgoing request.
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
        "content-encoding",
    }
)


def filter_headers(headers: dict[str, str]) -> dict[str, str]:
    return {name: value for name, value in headers.items() if name.lower() not in HOP_BY_HOP_HEADERS}


@dataclass
class ForwardedResponse:
    status_code: int
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)


class APIRequestForwarder:
    """Forwards matching HTTP requests to an external API translation service."""

    def __init__(self, base_url: str, timeout: float = 60.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @staticmethod
    def matches(path: str) -> bool:
        return path.endswith(API_SUFFIXES)

    async def forward(
        self,
        method: str,
        path: str,
        query: str,
        headers: dict[str, str],
        body: bytes,
    ) -> ForwardedResponse:
        """Forward one request.

        Raises:
            APIForwardingError: 503 when no base URL is configured, 502 when
                the translation service cannot be reached.
        """
        if not self.base_url:
            raise APIForwardingError("API proxy is not configured", status_code=503)

        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{query}"

        logger.info("Forwarding %s %s", method, path)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    url,
                    content=body or None,
                    headers=filter_headers(headers),
                )
        except httpx.RequestError as exc:
            logger.error("API proxy request failed: %s", exc)
            raise APIForwardingError(f"API proxy request failed: {exc}", status_code=502) from exc

        logger.debug("API proxy answered %d (%d bytes)", response.status_code, len(response.content))
        return ForwardedResponse(
            status_code=response.status_code,
            content=response.content,
            headers=filter_headers(dict(response.headers)),
        )
