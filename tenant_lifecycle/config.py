from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2026-10-19.v1"
    database_url: str = "sqlite:///./tenant_lifecycle.db"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Store ----
    # Upper bound for a single store round trip (sqlite busy timeout / postgres statement_timeout)
    store_timeout_seconds: float = 10.0

    # ---- Logging ----
    log_level: str = "INFO"
    sql_log_level: str = "WARNING"

    # ---- Auth ----
    auth_mode: str = "dev"  # dev|gateway (gateway: identity headers are set by the upstream auth proxy)
    dev_auto_provision: bool = True

    # Dev header names
    dev_header_org_slug: str = "X-Org-Slug"
    dev_header_user_email: str = "X-User-Email"
    dev_header_user_role: str = "X-User-Role"

    # ---- Offboarding ----
    bad_debt_category: str = "bad_debt"
    tenant_history_max_page_size: int = 200

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod:
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")

        if self.store_timeout_seconds <= 0:
            raise ValueError("store_timeout_seconds must be positive")


settings = Settings()
