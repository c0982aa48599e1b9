"""HTTP catch-all: REST forwarding for OpenAI-style paths, static assets for the rest."""

import asyncio
import logging

from fastapi import APIRouter, Request, Response

from app.services.api_forwarder import APIRequestForwarder
from app.services.live_relay import APIForwardingError
from app.services.static_assets import CHARSET_SUFFIX, StaticAssetProvider

logger = logging.getLogger(__name__)

router = APIRouter()

PLAIN_TEXT = "text/plain" + CHARSET_SUFFIX
FORWARDED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]
STATIC_METHODS = ("GET", "HEAD")


def _plain_text(message: str, status_code: int) -> Response:
    return Response(content=message, status_code=status_code, media_type=PLAIN_TEXT)


@router.api_route("/{path:path}", methods=FORWARDED_METHODS, include_in_schema=False)
async def serve(request: Request, path: str) -> Response:
    url_path = request.url.path

    if APIRequestForwarder.matches(url_path):
        forwarder: APIRequestForwarder = request.app.state.api_forwarder
        try:
            forwarded = await forwarder.forward(
                method=request.method,
                path=url_path,
                query=request.url.query,
                headers=dict(request.headers),
                body=await request.body(),
            )
        except APIForwardingError as exc:
            logger.error("API request error: %s", exc)
            return _plain_text(str(exc), exc.status_code)
        return Response(
            content=forwarded.content,
            status_code=forwarded.status_code,
            headers=forwarded.headers,
        )

    if request.method not in STATIC_METHODS:
        response = _plain_text("Method Not Allowed", 405)
        response.headers["Allow"] = ", ".join(STATIC_METHODS)
        return response

    provider: StaticAssetProvider = request.app.state.asset_provider
    asset = await asyncio.to_thread(provider.load, url_path)
    if asset is None:
        logger.debug("Static asset not found: %s", url_path)
        return _plain_text("Not Found", 404)

    body, content_type = asset
    return Response(content=body, media_type=content_type)
