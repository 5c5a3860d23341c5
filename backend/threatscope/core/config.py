from typing import Annotated, Any, List, Literal, Optional

from pydantic import AnyUrl, BeforeValidator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors(v: Any) -> List[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "ThreatScope"
    API_PREFIX: str = "/api"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    SENTRY_DSN: Optional[AnyUrl] = None

    BACKEND_CORS_ORIGINS: Annotated[List[AnyUrl] | str, BeforeValidator(parse_cors)] = []
    FRONTEND_HOST: str = "http://localhost:3000"

    # Upstream LLM provider. The credential never leaves the server.
    NIM_API_KEY: Optional[str] = None
    NVIDIA_NIM_API_KEY: Optional[str] = None
    UPSTREAM_URL: str = "https://integrate.api.nvidia.com/v1/chat/completions"
    DEFAULT_MODEL: str = "meta/llama-3.1-8b-instruct"
    UPSTREAM_CONNECT_TIMEOUT_SECONDS: float = 10.0
    STREAM_IDLE_TIMEOUT_SECONDS: float = 120.0

    COUNTRIES_GRAPHQL_URL: str = "https://countries.trevorblades.com/graphql"
    COUNTRIES_CACHE_TTL_SECONDS: int = 300

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> List[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS] + [
            self.FRONTEND_HOST
        ]

    @property
    def nim_api_key(self) -> Optional[str]:
        """Credential for the upstream provider, or None when unset."""
        return self.NIM_API_KEY or self.NVIDIA_NIM_API_KEY or None


settings = Settings()
