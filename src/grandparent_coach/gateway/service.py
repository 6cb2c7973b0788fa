from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from loguru import logger

from grandparent_coach.gateway.errors import (
    InvalidRequestError,
    ProviderError,
    ProviderNotConfiguredError,
    RateLimitExceededError,
)
from grandparent_coach.gateway.schemas import CoachRequest, SummarizeRequest
from grandparent_coach.provider import ModelProvider
from grandparent_coach.rate_limiter import RateLimitDecision, RateLimiter
from grandparent_coach.safety import SafetyVerdict, classify, latest_user_content, sanitize
from grandparent_coach.system_prompt import (
    BASE_COACH_PROMPT,
    build_coach_system_prompt,
    build_summary_prompt,
    format_transcript,
)


@dataclass
class GatewayReply:
    content: str
    safety: SafetyVerdict = SafetyVerdict.SAFE
    headers: dict[str, str] = field(default_factory=dict)


class CoachingGateway:
    """Request handler behind ``/coach`` and ``/summarize``.

    Holds no per-request state; the only shared state is the rate limiter.
    Unsafe requests get a canned reply without contacting the provider and
    without consuming the caller's rate allowance.
    """

    def __init__(
        self,
        provider: ModelProvider | None,
        rate_limiter: RateLimiter,
        *,
        model: str,
        max_tokens: int = 600,
        temperature: float = 0.7,
        base_prompt: str = BASE_COACH_PROMPT,
        summary_max_tokens: int = 1200,
        timeout_seconds: float | None = 60.0,
    ):
        self._provider = provider
        self._rate_limiter = rate_limiter
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._base_prompt = base_prompt
        self._summary_max_tokens = summary_max_tokens
        self._timeout_seconds = timeout_seconds

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    async def coach(self, request: CoachRequest, caller_id: str) -> GatewayReply:
        messages = [{"role": m.role.value, "content": m.content} for m in request.messages]
        latest = latest_user_content(messages)
        if latest is None:
            raise InvalidRequestError("Request must contain at least one user message")

        verdict = classify(latest)
        if not verdict.is_safe:
            logger.info(f"Safety block ({verdict.verdict.value}) for caller {caller_id!r}")
            headers = rate_limit_headers(self._rate_limiter.peek(caller_id), self._rate_limiter.now())
            return GatewayReply(content=verdict.response or "", safety=verdict.verdict, headers=headers)

        headers = self._admit(caller_id)
        forwarded = [
            {"role": m["role"], "content": sanitize(m["content"])} if m["role"] == "user" else m
            for m in messages
        ]
        context = request.context.model_dump(exclude_none=True)
        system_prompt = build_coach_system_prompt(self._base_prompt, context)
        content = await self._complete(system_prompt, forwarded, max_tokens=self._max_tokens)
        return GatewayReply(content=content, headers=headers)

    async def summarize(self, request: SummarizeRequest, caller_id: str) -> GatewayReply:
        transcript = (request.transcript or "").strip()
        if not transcript and request.messages:
            transcript = format_transcript(
                [{"role": m.role.value, "content": m.content} for m in request.messages]
            )
        if not transcript:
            raise InvalidRequestError("Nothing to summarize: provide a transcript or messages")

        headers = self._admit(caller_id)
        prompt = build_summary_prompt(transcript, request.audience)
        content = await self._complete(
            "", [{"role": "user", "content": prompt}], max_tokens=self._summary_max_tokens
        )
        return GatewayReply(content=content, headers=headers)

    def _admit(self, caller_id: str) -> dict[str, str]:
        decision = self._rate_limiter.check(caller_id)
        headers = rate_limit_headers(decision, self._rate_limiter.now())
        if not decision.allowed:
            retry_after = decision.retry_after(self._rate_limiter.now())
            raise RateLimitExceededError(
                "Too many requests, please slow down",
                retry_after=retry_after,
                headers=headers,
            )
        return headers

    async def _complete(self, system_prompt: str, messages: list[dict], *, max_tokens: int) -> str:
        if self._provider is None:
            raise ProviderNotConfiguredError("Model provider API key is not configured")

        try:
            call = self._provider.complete(
                self._model, max_tokens, self._temperature, system_prompt, messages
            )
            if self._timeout_seconds:
                return await asyncio.wait_for(call, timeout=self._timeout_seconds)
            return await call
        except asyncio.TimeoutError as ex:
            logger.error(f"Model provider timed out after {self._timeout_seconds}s")
            raise ProviderError("Model provider timed out") from ex
        except Exception as ex:
            logger.error(f"Model provider call failed: {type(ex).__name__}: {ex}")
            raise ProviderError("Model provider request failed") from ex


def rate_limit_headers(decision: RateLimitDecision, now: float) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(max(0, int(decision.reset_at - now))),
    }
