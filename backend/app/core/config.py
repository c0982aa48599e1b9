from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Live Relay"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Upstream streaming API
    UPSTREAM_BASE_URL: str = "wss://generativelanguage.googleapis.com"
    UPSTREAM_API_KEY_HEADER: str = "x-goog-api-key"
    UPSTREAM_AUTH_QUERY_PARAM: str = "key"  # moved from the inbound query into UPSTREAM_API_KEY_HEADER
    UPSTREAM_USER_AGENT: str = "live-relay"
    UPSTREAM_OPEN_TIMEOUT_SECONDS: float = 10.0

    # Server-side credential, used when the inbound upgrade carries none.
    # Leave empty to require every client to bring its own key.
    GEMINI_API_KEY: str = ""

    # Live client defaults
    GEMINI_MODEL_ID: str = "gemini-2.0-flash-exp"
    LIVE_API_PATH: str = "/ws/google.ai.generativelanguage.v1alpha.GenerativeService.BidiGenerateContent"
    LIVE_CONNECT_TIMEOUT_SECONDS: float = 10.0

    # Browser console
    STATIC_DIR: str = "static"

    # OpenAI-compatible REST translation service (/chat/completions, /embeddings, /models)
    API_PROXY_BASE_URL: str = ""
    API_PROXY_TIMEOUT_SECONDS: float = 60.0

    model_config = {"env_file": ".env", "case_sensitive": True}


settings = Settings()
