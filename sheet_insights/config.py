from __future__ import annotations

import json
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

# Environment variable -> service account JSON field
_SERVICE_ACCOUNT_ENV_FIELDS = {
    "GOOGLE_TYPE": "type",
    "GOOGLE_PROJECT_ID": "project_id",
    "GOOGLE_PRIVATE_KEY_ID": "private_key_id",
    "GOOGLE_PRIVATE_KEY": "private_key",
    "GOOGLE_CLIENT_EMAIL": "client_email",
    "GOOGLE_CLIENT_ID": "client_id",
    "GOOGLE_AUTH_URI": "auth_uri",
    "GOOGLE_TOKEN_URI": "token_uri",
    "GOOGLE_AUTH_PROVIDER_X509_CERT_URL": "auth_provider_x509_cert_url",
    "GOOGLE_CLIENT_X509_CERT_URL": "client_x509_cert_url",
    "GOOGLE_UNIVERSE_DOMAIN": "universe_domain",
}


class DigestMode(str, Enum):
    BASIC = "basic"
    DETAILED = "detailed"
    SAMPLED = "sampled"


class DriveConfig(BaseModel):
    credentials_file: Path | None = Field(
        None,
        description="Optional path to a service account JSON key; GOOGLE_* variables are used otherwise",
    )
    request_timeout: float = Field(
        30.0,
        gt=0,
        description="Timeout in seconds for each Google Drive API call",
    )
    fetch_deadline: float = Field(
        90.0,
        gt=0,
        description="Overall deadline in seconds for fetching one file (metadata plus content)",
    )

    @field_validator("credentials_file")
    @classmethod
    def _expand_credentials_path(cls, value: Path | None) -> Path | None:
        if value is None:
            return None
        return value.expanduser().resolve()

    def service_account_info(self) -> Dict[str, Any]:
        """Return service account fields from the key file or the environment."""

        key_file = self.credentials_file
        if key_file is None and os.environ.get("GOOGLE_APPLICATION_CREDENTIALS"):
            key_file = Path(os.environ["GOOGLE_APPLICATION_CREDENTIALS"]).expanduser()
        if key_file is not None:
            with key_file.open("r", encoding="utf-8") as fh:
                return json.load(fh)

        info: Dict[str, Any] = {}
        for env_name, key in _SERVICE_ACCOUNT_ENV_FIELDS.items():
            value = os.environ.get(env_name)
            if value:
                info[key] = value
        if "private_key" in info:
            # Keys stored in .env files carry escaped newlines
            info["private_key"] = info["private_key"].replace("\\n", "\n")

        missing = [key for key in ("private_key", "client_email", "token_uri") if key not in info]
        if missing:
            msg = (
                "Google service account is not configured; missing "
                + ", ".join(missing)
                + " (set GOOGLE_* variables or drive.credentials_file)"
            )
            raise ValueError(msg)
        return info


class LLMConfig(BaseModel):
    """Settings for the chat completion endpoint."""

    model: str = Field("gpt-4.1-mini", description="LLM model identifier")
    temperature: float = Field(
        0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature",
    )
    max_output_tokens: int | None = Field(
        None,
        gt=0,
        description="Optional cap on the number of tokens returned",
    )
    api_key: str | None = Field(
        None,
        description="Explicit API key; if omitted the key is read from api_key_env",
    )
    api_key_env: str = Field(
        "OPENAI_API_KEY",
        description="Environment variable with the API key",
    )
    base_url: str | None = Field(
        None,
        description="Optional override for the API base URL",
    )
    organization: str | None = Field(
        None,
        description="Optional OpenAI organization identifier",
    )
    request_timeout: float = Field(
        60.0,
        gt=0,
        description="Timeout in seconds for completion requests",
    )
    json_mode: bool = Field(
        False,
        description="Request response_format=json_object from providers that support it",
    )

    def resolve_api_key(self) -> str | None:
        return self.api_key or os.environ.get(self.api_key_env)


class ServerConfig(BaseModel):
    host: str = Field("0.0.0.0", description="Interface the HTTP server binds to")
    port: int = Field(5000, gt=0, lt=65536, description="Listen port")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by the CORS middleware",
    )


class RoutePolicy(BaseModel):
    """How much of a workbook an insight route digests before prompting."""

    digest_mode: DigestMode = Field(DigestMode.BASIC, description="Summarization strategy")
    max_sheets: int | None = Field(
        1,
        ge=1,
        description="Number of leading sheets to summarize; null for all sheets",
    )
    max_rows: int | None = Field(
        None,
        ge=0,
        description="Number of leading rows per sheet; null for all rows",
    )
    test_mode_max_rows: int | None = Field(
        None,
        ge=0,
        description="Row bound used instead of max_rows when the request sets testMode",
    )

    def row_limit(self, test_mode: bool) -> int | None:
        if test_mode and self.test_mode_max_rows is not None:
            return self.test_mode_max_rows
        return self.max_rows

    @property
    def single_sheet(self) -> bool:
        return self.max_sheets == 1


class RoutesConfig(BaseModel):
    final_summary: RoutePolicy = Field(
        default_factory=lambda: RoutePolicy(
            digest_mode=DigestMode.BASIC, max_sheets=1, max_rows=10
        )
    )
    general_analytics: RoutePolicy = Field(
        default_factory=lambda: RoutePolicy(
            digest_mode=DigestMode.DETAILED, max_sheets=2, max_rows=50, test_mode_max_rows=8
        )
    )
    recommendations: RoutePolicy = Field(
        default_factory=lambda: RoutePolicy(
            digest_mode=DigestMode.DETAILED, max_sheets=2, max_rows=None, test_mode_max_rows=10
        )
    )
    alerts: RoutePolicy = Field(
        default_factory=lambda: RoutePolicy(
            digest_mode=DigestMode.DETAILED, max_sheets=1, max_rows=20
        )
    )


class AppConfig(BaseModel):
    drive: DriveConfig = Field(default_factory=DriveConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    routes: RoutesConfig = Field(default_factory=RoutesConfig)
    validate_response_shape: bool = Field(
        True,
        description="Reject completions whose JSON does not match the requested shape",
    )


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from an optional YAML file and return a validated object."""

    data: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path).expanduser().resolve()
        if not config_path.exists():
            msg = f"Configuration file not found: {config_path}"
            raise FileNotFoundError(msg)

        with config_path.open("r", encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh)

        if loaded is None:
            msg = f"Configuration file is empty: {config_path}"
            raise ValueError(msg)
        data = loaded

    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
