"""WebSocket relay endpoint.

Every WebSocket upgrade, whatever its path, is relayed to the upstream
streaming API. The path and query are forwarded verbatim except the
authentication query parameter, which becomes an outbound header.

Close codes seen by the client:
    1008 - no credential in the URL and none configured on the server
    1011 - the upstream could not be reached
    otherwise the code/reason the upstream closed with
"""

import logging

from fastapi import APIRouter, WebSocket

from app.services.live_relay import (
    POLICY_VIOLATION,
    ConfigurationError,
    RelayEndpoint,
    StarletteChannel,
    build_upstream_target,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _raw_path(websocket: WebSocket) -> str:
    raw_path = websocket.scope.get("raw_path")
    if raw_path:
        return raw_path.decode("latin-1")
    return websocket.url.path


@router.websocket("/{path:path}")
async def relay_websocket(websocket: WebSocket, path: str) -> None:
    """Bridge one client WebSocket to one upstream WebSocket until either side closes."""
    client = StarletteChannel(websocket)
    await client.accept()

    relay_config = websocket.app.state.relay_config
    connector = websocket.app.state.upstream_connector

    query = websocket.scope.get("query_string", b"").decode("latin-1")
    try:
        target = build_upstream_target(_raw_path(websocket), query, relay_config)
    except ConfigurationError as exc:
        logger.warning("Rejecting relay connection: %s", exc)
        await client.close(POLICY_VIOLATION, str(exc))
        return

    endpoint = RelayEndpoint(client=client, target=target, connector=connector)
    closure = await endpoint.run()

    if endpoint.failures:
        logger.info("[%s] Session ended with %d recorded failure(s)", endpoint.session_id, len(endpoint.failures))
    logger.debug("[%s] Final closure: %s", endpoint.session_id, closure)
