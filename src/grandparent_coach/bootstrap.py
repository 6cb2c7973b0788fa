from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from fastapi import FastAPI
from loguru import logger

from grandparent_coach.app_config import AppConfig, RuntimeEnv
from grandparent_coach.client import DialogueOrchestrator, GatewayClient
from grandparent_coach.gateway import CoachingGateway, create_app
from grandparent_coach.provider import ModelProvider, create_provider
from grandparent_coach.rate_limiter import RateLimiter
from grandparent_coach.store import ContextAggregator, KeyValueStore, SessionStore, UsageCounter
from grandparent_coach.system_prompt import load_base_prompt


@dataclass
class ChatRuntime:
    orchestrator: DialogueOrchestrator
    gateway_client: GatewayClient
    store: KeyValueStore

    async def close(self) -> None:
        await self.gateway_client.close()
        self.store.close()


def build_gateway(app: AppConfig, env: RuntimeEnv, *, provider: ModelProvider | None = None) -> CoachingGateway:
    if provider is None and env.provider_api_key:
        provider = create_provider(app.provider_name, env.provider_api_key, base_url=env.provider_base_url)
    if provider is None:
        logger.warning(f"{env.provider_env_var} is not set; /coach will answer with provider_not_configured")

    return CoachingGateway(
        provider,
        RateLimiter(
            app.rate_limit_max_requests,
            app.rate_limit_window_seconds,
            max_callers=app.rate_limit_max_callers,
        ),
        model=app.model,
        max_tokens=app.max_tokens,
        temperature=app.temperature,
        base_prompt=load_base_prompt(app.system_prompt_path),
    )


def build_gateway_app(app: AppConfig, env: RuntimeEnv) -> FastAPI:
    return create_app(build_gateway(app, env), sweep_interval_seconds=app.rate_limit_window_seconds)


def build_chat_runtime(app: AppConfig, env: RuntimeEnv) -> ChatRuntime:
    db_path = Path(app.store_path)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    store = KeyValueStore(str(db_path))
    sessions = SessionStore(store)

    gateway_client = GatewayClient(
        env.gateway_url_override or app.gateway_url,
        caller_id=app.caller_id,
        timeout_seconds=app.gateway_timeout_seconds,
    )
    orchestrator = DialogueOrchestrator(
        sessions,
        UsageCounter(store),
        gateway_client,
        aggregator=ContextAggregator(sessions),
        is_pro=lambda: app.is_pro,
        free_tier_limit=app.free_tier_limit,
        age_range=app.age_range,
    )
    return ChatRuntime(orchestrator=orchestrator, gateway_client=gateway_client, store=store)
