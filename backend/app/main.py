import functools
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.router import api_router
from app.core.config import settings
from app.core.logging import configure_logging
from app.services.api_forwarder import APIRequestForwarder
from app.services.live_relay import RelayConfig, connect_upstream
from app.services.static_assets import StaticAssetProvider

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)

    relay_config = RelayConfig(
        upstream_base_url=settings.UPSTREAM_BASE_URL,
        api_key_header=settings.UPSTREAM_API_KEY_HEADER,
        auth_query_param=settings.UPSTREAM_AUTH_QUERY_PARAM,
        fallback_api_key=settings.GEMINI_API_KEY,
        user_agent=settings.UPSTREAM_USER_AGENT,
        open_timeout_seconds=settings.UPSTREAM_OPEN_TIMEOUT_SECONDS,
    )

    app.state.relay_config = relay_config
    app.state.upstream_connector = functools.partial(
        connect_upstream,
        open_timeout=relay_config.open_timeout_seconds,
        user_agent=relay_config.user_agent,
    )
    app.state.asset_provider = StaticAssetProvider(settings.STATIC_DIR)
    app.state.api_forwarder = APIRequestForwarder(
        base_url=settings.API_PROXY_BASE_URL,
        timeout=settings.API_PROXY_TIMEOUT_SECONDS,
    )

    logger.info(
        "Live relay initialized (upstream=%s, fallback_key=%s, api_proxy=%s)",
        relay_config.upstream_base_url,
        "set" if relay_config.fallback_api_key else "unset",
        settings.API_PROXY_BASE_URL or "disabled",
    )

    yield

    logger.info("Shutting down live relay")


app = FastAPI(
    title=settings.PROJECT_NAME,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check():
    return {"status": "healthy"}


# Catch-all routes go last so /health and the docs keep matching first.
app.include_router(api_router)
