from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str
    provider_base_url: str | None
    gateway_url_override: str | None


@dataclass
class AppConfig:
    provider_name: str
    model: str
    max_tokens: int
    temperature: float
    system_prompt_path: str | None
    gateway_host: str
    gateway_port: int
    gateway_timeout_seconds: float
    rate_limit_max_requests: int
    rate_limit_window_seconds: float
    rate_limit_max_callers: int
    gateway_url: str
    store_path: str
    free_tier_limit: int
    is_pro: bool
    caller_id: str
    age_range: str | None
    log_level: str
    log_consumers: list | None


CONFIG_FILE = "config.json"

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off"})


def load_json_config(path: str | Path | None = None) -> dict:
    """Read ``config.json`` from the working directory; a missing file means all defaults."""
    config_path = Path(path) if path else Path.cwd() / CONFIG_FILE
    if not config_path.is_file():
        return {}
    return json.loads(config_path.read_text(encoding="utf-8"))


def _parse_flag(value: object, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        return default
    return default if value is None else bool(value)


def parse_app_config(config: dict) -> AppConfig:
    return AppConfig(
        provider_name=config.get("Provider", "openai").strip().lower(),
        model=config.get("Model", "gpt-4o-mini"),
        max_tokens=int(config.get("MaxTokens", 600)),
        temperature=float(config.get("Temperature", 0.7)),
        system_prompt_path=str(config.get("SystemPromptPath", "")).strip() or None,
        gateway_host=str(config.get("GatewayHost", "127.0.0.1")),
        gateway_port=int(config.get("GatewayPort", 3000)),
        gateway_timeout_seconds=float(config.get("GatewayTimeoutSeconds", 30)),
        rate_limit_max_requests=int(config.get("RateLimitMaxRequests", 10)),
        rate_limit_window_seconds=float(config.get("RateLimitWindowSeconds", 60)),
        rate_limit_max_callers=int(config.get("RateLimitMaxCallers", 10_000)),
        gateway_url=str(config.get("GatewayUrl", "http://localhost:3000")),
        store_path=str(config.get("StorePath", ".grandparent_coach/store.db")),
        free_tier_limit=int(config.get("FreeTierLimit", 3)),
        is_pro=_parse_flag(config.get("IsPro")),
        caller_id=str(config.get("CallerId", "local-device")).strip() or "local-device",
        age_range=str(config.get("AgeRange", "")).strip() or None,
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env(provider_name: str) -> RuntimeEnv:
    if provider_name == "anthropic":
        provider_api_key = os.environ.get("ANTHROPIC_API_KEY", "")
        provider_env_var = "ANTHROPIC_API_KEY"
    else:
        provider_api_key = os.environ.get("OPENAI_API_KEY") or os.environ.get("OPENAI_API_TOKEN", "")
        provider_env_var = "OPENAI_API_KEY"

    return RuntimeEnv(
        provider_api_key=provider_api_key,
        provider_env_var=provider_env_var,
        provider_base_url=os.environ.get("OPENAI_BASE_URL") or None,
        gateway_url_override=os.environ.get("COACH_GATEWAY_URL") or None,
    )
