"""Environment configuration for the Coach API."""
import os
from typing import ClassVar, Dict, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from coach_api.errors import ConfigurationError

# Load environment variables from a local .env if present
load_dotenv()

DEFAULT_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"
DEFAULT_GATEWAY_MODEL = "google/gemini-2.5-flash"


class Settings(BaseModel):
    """
    Settings snapshot read from the environment.

    Built per request (see ``get_settings``) so a missing credential fails the
    request that needs it instead of the whole process at import time.
    """

    ai_gateway_api_key: Optional[str] = None
    ai_gateway_url: str = DEFAULT_GATEWAY_URL
    ai_gateway_model: str = DEFAULT_GATEWAY_MODEL
    upstream_timeout_seconds: Optional[float] = None

    store_url: Optional[str] = None
    store_service_key: Optional[str] = None

    auth_jwt_secret: Optional[str] = None

    stream_api_key: Optional[str] = None
    stream_api_secret: Optional[str] = None

    relay_queue_size: int = 64

    # Setting name -> environment variable
    ENV_NAMES: ClassVar[Dict[str, str]] = {
        "ai_gateway_api_key": "AI_GATEWAY_API_KEY",
        "ai_gateway_url": "AI_GATEWAY_URL",
        "ai_gateway_model": "AI_GATEWAY_MODEL",
        "upstream_timeout_seconds": "UPSTREAM_TIMEOUT_SECONDS",
        "store_url": "STORE_URL",
        "store_service_key": "STORE_SERVICE_KEY",
        "auth_jwt_secret": "AUTH_JWT_SECRET",
        "stream_api_key": "STREAM_API_KEY",
        "stream_api_secret": "STREAM_API_SECRET",
        "relay_queue_size": "RELAY_QUEUE_SIZE",
    }

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``environ`` (defaults to ``os.environ``), ignoring blank values."""
        environ = os.environ if environ is None else environ
        values = {}
        for field_name, env_name in cls.ENV_NAMES.items():
            raw = environ.get(env_name)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()
        return cls(**values)

    @property
    def store_is_rest(self) -> bool:
        """True when the store is the managed backend's REST API rather than a SQL database."""
        return bool(self.store_url) and self.store_url.startswith(("http://", "https://"))

    def require(self, *field_names: str) -> "Settings":
        """
        Ensure the named settings are present.

        Raises:
            ConfigurationError: naming every missing environment variable
        """
        missing = [
            self.ENV_NAMES[name] for name in field_names
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(f"{', '.join(missing)} is not configured")
        return self

    def require_chat(self) -> "Settings":
        """Everything the chat relay needs before it may open the upstream stream."""
        self.require("ai_gateway_api_key", "store_url")
        if self.store_is_rest:
            self.require("store_service_key")
        return self


def get_settings() -> Settings:
    """FastAPI dependency returning a fresh settings snapshot."""
    return Settings.from_env()
