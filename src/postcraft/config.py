from __future__ import annotations

import os

from pydantic import BaseModel, Field

from .models import PipelineSettings

DEFAULT_MODEL = "gpt-4o-mini"
OPENAI_API_BASE = "https://api.openai.com/v1"

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "🚀 Developer Productivity",
    "🤖 AI/ML Engineering",
    "🏗️ Tech Infrastructure",
    "💡 Industry Insights",
    "🛠️ Product Innovation",
    "🎯 Leadership & Culture",
    "📊 Tech Strategy",
    "🔮 Future of Development",
    "📚 Lessons Learned",
    "🤝 Community & Open Source",
)

# Newsletter categories from before the LinkedIn rewrite; stores holding any of them get migrated.
LEGACY_CATEGORIES: frozenset[str] = frozenset(
    {
        "Employee Milestones",
        "Customer Wins",
        "Product Announcements",
        "Company News",
        "Industry Updates",
        "Team Updates",
    }
)


def _parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def _env_categories() -> list[str]:
    return _parse_csv(os.getenv("POST_CATEGORIES")) or list(DEFAULT_CATEGORIES)


class PostCraftConfig(BaseModel):
    # Completion endpoint
    openai_api_key: str | None = Field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    openai_model: str = Field(default_factory=lambda: os.getenv("OPENAI_MODEL", DEFAULT_MODEL))
    openai_base_url: str = Field(default_factory=lambda: os.getenv("OPENAI_BASE_URL", OPENAI_API_BASE))
    categories: list[str] = Field(default_factory=_env_categories)

    # Pipeline behavior
    max_input_chars: int = Field(default_factory=lambda: int(os.getenv("MAX_INPUT_CHARS", "8000")))
    baseline_output_budget: int = Field(
        default_factory=lambda: int(os.getenv("BASELINE_OUTPUT_BUDGET", "1000"))
    )
    upstream_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "60"))
    )
    process_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("PROCESS_TIMEOUT_SECONDS", "150"))
    )

    # Settings storage (encrypted key-value file)
    settings_path: str | None = Field(default_factory=lambda: os.getenv("SETTINGS_PATH"))
    fernet_key: str | None = Field(default_factory=lambda: os.getenv("SETTINGS_FERNET_KEY"))

    # Result correlation
    result_ttl_seconds: float = Field(default_factory=lambda: float(os.getenv("RESULT_TTL_SECONDS", "900")))
    result_store_max_entries: int = Field(
        default_factory=lambda: int(os.getenv("RESULT_STORE_MAX_ENTRIES", "128"))
    )

    # Observability
    enable_metrics: bool = Field(
        default_factory=lambda: os.getenv("ENABLE_METRICS", "false").lower() == "true"
    )
    metrics_bind: str = Field(default_factory=lambda: os.getenv("METRICS_BIND", "127.0.0.1"))
    metrics_port: int = Field(default_factory=lambda: int(os.getenv("METRICS_PORT", "9110")))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = Field(default_factory=lambda: os.getenv("LOG_FORMAT", "json"))

    # Server hardening
    server_auth_token: str | None = Field(default_factory=lambda: os.getenv("SERVER_AUTH_TOKEN"))
    enable_api_docs: bool = Field(
        default_factory=lambda: os.getenv("ENABLE_API_DOCS", "false").lower() == "true"
    )
    allowed_hosts: list[str] = Field(default_factory=lambda: _parse_csv(os.getenv("ALLOWED_HOSTS")))
    cors_allow_origins: list[str] = Field(default_factory=lambda: _parse_csv(os.getenv("CORS_ALLOW_ORIGINS")))
    cors_allow_origin_regex: str | None = Field(default_factory=lambda: os.getenv("CORS_ALLOW_ORIGIN_REGEX"))
    max_request_body_bytes: int = Field(
        default_factory=lambda: int(os.getenv("MAX_REQUEST_BODY_BYTES", str(256 * 1024)))
    )

    def settings_snapshot(self) -> PipelineSettings:
        return PipelineSettings(api_key=self.openai_api_key, model=self.openai_model, categories=list(self.categories))

    def require_fernet_key(self) -> str:
        if not self.fernet_key:
            raise ValueError("SETTINGS_FERNET_KEY is required for encrypted settings storage.")
        return self.fernet_key
