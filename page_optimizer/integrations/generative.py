"""Generative text providers behind one ``generate`` call.

Each backend is a ``ProviderStrategy`` that knows its endpoint, auth headers,
request envelope and where the text and token usage live in the reply.
``GenerativeProvider.generate`` normalizes every backend to
``GenerationResult(text, tokens_used)``.

Behavior shared by all providers:
- a blank API key raises MissingCredentialsError before any request is made
- the whole call (including retries) runs under a hard timer; on expiry the
  in-flight request is cancelled and GenerationTimeoutError is raised
- 401/403 raise AuthError; 429 and 5xx are retried with exponential backoff
  and raise ProviderError once retries are spent
- each provider has its own circuit breaker

To add a provider, add a strategy and register it in PROVIDERS.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from page_optimizer.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from page_optimizer.core.config import get_settings
from page_optimizer.core.exceptions import (
    AuthError,
    GenerationTimeoutError,
    MissingCredentialsError,
    ProviderError,
)
from page_optimizer.core.logging import generation_logger, get_logger

logger = get_logger(__name__)


@dataclass
class GenerationResult:
    """Normalized reply of any provider."""

    text: str
    tokens_used: int
    provider: str = ""
    model: str = ""
    duration_ms: float = 0.0


class ProviderStrategy:
    """Request/response envelope of one provider."""

    provider_id: str = ""
    default_model: str = ""

    def endpoint(self, model: str) -> str:
        raise NotImplementedError

    def headers(self, api_key: str) -> dict[str, str]:
        raise NotImplementedError

    def body(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        raise NotImplementedError

    def parse(self, data: dict[str, Any]) -> tuple[str, int]:
        """Return (text, tokens_used) from a success reply."""
        raise NotImplementedError

    def error_message(self, data: Any) -> str | None:
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict):
                return error.get("message")
            if isinstance(error, str):
                return error
        return None


class AnthropicStrategy(ProviderStrategy):
    provider_id = "anthropic"
    default_model = "claude-3-haiku-20240307"

    def endpoint(self, model: str) -> str:
        return "https://api.anthropic.com/v1/messages"

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": "2023-06-01",
        }

    def body(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        return {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }

    def parse(self, data: dict[str, Any]) -> tuple[str, int]:
        content = data.get("content") or []
        text = content[0].get("text", "") if content else ""
        usage = data.get("usage") or {}
        tokens = (usage.get("input_tokens") or 0) + (usage.get("output_tokens") or 0)
        return text, tokens


class ChatCompletionsStrategy(ProviderStrategy):
    """OpenAI-compatible chat completions envelope."""

    url = "https://api.openai.com/v1/chat/completions"
    provider_id = "openai"
    default_model = "gpt-4o-mini"

    def endpoint(self, model: str) -> str:
        return self.url

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def body(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        return {
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }

    def parse(self, data: dict[str, Any]) -> tuple[str, int]:
        choices = data.get("choices") or []
        text = ""
        if choices:
            text = (choices[0].get("message") or {}).get("content") or ""
        usage = data.get("usage") or {}
        tokens = usage.get("total_tokens") or (
            (usage.get("prompt_tokens") or 0) + (usage.get("completion_tokens") or 0)
        )
        return text, tokens


class GroqStrategy(ChatCompletionsStrategy):
    url = "https://api.groq.com/openai/v1/chat/completions"
    provider_id = "groq"
    default_model = "llama-3.1-8b-instant"


class OpenRouterStrategy(ChatCompletionsStrategy):
    url = "https://openrouter.ai/api/v1/chat/completions"
    provider_id = "openrouter"
    default_model = "openai/gpt-4o-mini"

    def headers(self, api_key: str) -> dict[str, str]:
        headers = super().headers(api_key)
        headers["HTTP-Referer"] = "https://page-optimizer.app"
        headers["X-Title"] = "Page Optimizer"
        return headers


class GoogleStrategy(ProviderStrategy):
    provider_id = "google"
    default_model = "gemini-2.0-flash"

    def endpoint(self, model: str) -> str:
        return (
            "https://generativelanguage.googleapis.com/v1beta/models/"
            f"{model}:generateContent"
        )

    def headers(self, api_key: str) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": api_key}

    def body(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }

    def parse(self, data: dict[str, Any]) -> tuple[str, int]:
        candidates = data.get("candidates") or []
        text = ""
        if candidates:
            parts = (candidates[0].get("content") or {}).get("parts") or []
            text = "".join(part.get("text", "") for part in parts)
        usage = data.get("usageMetadata") or {}
        return text, usage.get("totalTokenCount") or 0


PROVIDERS: dict[str, ProviderStrategy] = {
    strategy.provider_id: strategy
    for strategy in (
        AnthropicStrategy(),
        ChatCompletionsStrategy(),
        GroqStrategy(),
        OpenRouterStrategy(),
        GoogleStrategy(),
    )
}


def get_strategy(provider_id: str) -> ProviderStrategy:
    """Look up a provider strategy; unknown ids raise ValueError."""
    try:
        return PROVIDERS[provider_id.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown generative provider '{provider_id}'. "
            f"Supported: {', '.join(sorted(PROVIDERS))}"
        ) from None


class GenerativeProvider:
    """Uniform async interface over all registered providers."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        max_retries: int = 2,
        retry_delay: float = 1.0,
    ) -> None:
        settings = get_settings()
        self._transport = transport
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._temperature = settings.generation_temperature
        self._max_tokens = settings.generation_max_tokens
        self._default_timeout_ms = settings.generation_timeout_ms
        self._check_timeout_ms = settings.provider_check_timeout_ms
        self._breaker_config = CircuitBreakerConfig(
            failure_threshold=settings.generation_circuit_failure_threshold,
            recovery_timeout=settings.generation_circuit_recovery_timeout,
        )
        self._breakers: dict[str, CircuitBreaker] = {}

    def circuit_breaker(self, provider_id: str) -> CircuitBreaker:
        if provider_id not in self._breakers:
            self._breakers[provider_id] = CircuitBreaker(
                self._breaker_config, name=f"generation:{provider_id}"
            )
        return self._breakers[provider_id]

    async def generate(
        self,
        provider_id: str,
        api_key: str | None,
        model: str | None,
        system_prompt: str,
        user_prompt: str,
        timeout_ms: int | None = None,
    ) -> GenerationResult:
        """Run one generation and normalize the reply.

        Raises:
            ValueError: Unknown provider id.
            MissingCredentialsError: Blank API key.
            GenerationTimeoutError: The call exceeded ``timeout_ms``.
            AuthError: The provider rejected the key.
            ProviderError: Any other provider failure.
        """
        strategy = get_strategy(provider_id)
        if not api_key or not api_key.strip():
            raise MissingCredentialsError(
                f"An API key is required for provider '{strategy.provider_id}'"
            )
        model = model or strategy.default_model
        timeout_ms = timeout_ms or self._default_timeout_ms

        breaker = self.circuit_breaker(strategy.provider_id)
        if not await breaker.can_execute():
            generation_logger.circuit_open(strategy.provider_id)
            raise ProviderError(
                f"Provider '{strategy.provider_id}' is temporarily unavailable (circuit open)",
                provider=strategy.provider_id,
            )

        try:
            return await asyncio.wait_for(
                self._call(strategy, api_key.strip(), model, system_prompt, user_prompt, timeout_ms),
                timeout=timeout_ms / 1000,
            )
        except TimeoutError:
            generation_logger.timeout(strategy.provider_id, model, timeout_ms)
            await breaker.record_failure()
            raise GenerationTimeoutError(strategy.provider_id, timeout_ms) from None

    async def check_key(
        self,
        provider_id: str,
        api_key: str | None,
        model: str | None = None,
        timeout_ms: int | None = None,
    ) -> str:
        """Send a one-token request to confirm the key and model are usable.

        No retries and no circuit breaker bookkeeping: a failed check says
        nothing about the provider's health.

        Returns:
            The model id the provider reported, else the one requested.

        Raises:
            ValueError: Unknown provider id.
            MissingCredentialsError: Blank API key.
            GenerationTimeoutError: No reply within ``timeout_ms``.
            AuthError: The provider rejected the key.
            ProviderError: Unreachable provider or any other error status.
        """
        strategy = get_strategy(provider_id)
        if not api_key or not api_key.strip():
            raise MissingCredentialsError(
                f"An API key is required for provider '{strategy.provider_id}'"
            )
        provider = strategy.provider_id
        model = model or strategy.default_model
        timeout_ms = timeout_ms or self._check_timeout_ms

        async def send() -> httpx.Response:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout_ms / 1000 + 5),
                transport=self._transport,
            ) as client:
                return await client.post(
                    strategy.endpoint(model),
                    headers=strategy.headers(api_key.strip()),
                    json=strategy.body(model, "Reply with OK.", "Hi", 0.0, 1),
                )

        try:
            response = await asyncio.wait_for(send(), timeout=timeout_ms / 1000)
        except (TimeoutError, httpx.TimeoutException):
            raise GenerationTimeoutError(provider, timeout_ms) from None
        except httpx.RequestError as e:
            raise ProviderError(f"Could not reach {provider}: {e}", provider=provider) from e

        if response.status_code in (401, 403):
            generation_logger.auth_failure(provider, response.status_code)
            raise AuthError(
                f"{provider} rejected the API key ({response.status_code})",
                status_code=response.status_code,
            )
        data = _json_or_none(response)
        if response.status_code >= 400:
            detail = strategy.error_message(data) or f"HTTP {response.status_code}"
            raise ProviderError(
                f"{provider} key check failed ({response.status_code}): {detail}",
                provider=provider,
                status_code=response.status_code,
            )

        reported = data.get("model") if isinstance(data, dict) else None
        logger.info(
            "Provider key check passed",
            extra={"provider": provider, "model": model},
        )
        return str(reported or model)

    async def _call(
        self,
        strategy: ProviderStrategy,
        api_key: str,
        model: str,
        system_prompt: str,
        user_prompt: str,
        timeout_ms: int,
    ) -> GenerationResult:
        provider = strategy.provider_id
        breaker = self.circuit_breaker(provider)
        body = strategy.body(
            model, system_prompt, user_prompt, self._temperature, self._max_tokens
        )
        start_time = time.monotonic()

        # Transport timeout must exceed timeout_ms; the deadline raises first
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_ms / 1000 + 5),
            transport=self._transport,
        ) as client:
            for attempt in range(self._max_retries + 1):
                generation_logger.api_call_start(provider, model, len(user_prompt))
                generation_logger.request_body(provider, model, system_prompt, user_prompt)
                attempt_start = time.monotonic()
                try:
                    response = await client.post(
                        strategy.endpoint(model),
                        headers=strategy.headers(api_key),
                        json=body,
                    )
                except httpx.TimeoutException:
                    raise TimeoutError from None
                except httpx.RequestError as e:
                    duration_ms = (time.monotonic() - attempt_start) * 1000
                    generation_logger.api_call_error(
                        provider, model, duration_ms, None, str(e), type(e).__name__
                    )
                    await breaker.record_failure()
                    if attempt < self._max_retries:
                        await self._backoff(provider, attempt, None)
                        continue
                    raise ProviderError(
                        f"Request to {provider} failed: {e}", provider=provider
                    ) from e

                duration_ms = (time.monotonic() - attempt_start) * 1000
                status_code = response.status_code

                if status_code in (401, 403):
                    generation_logger.auth_failure(provider, status_code)
                    raise AuthError(
                        f"{provider} rejected the API key ({status_code})",
                        status_code=status_code,
                    )

                if status_code == 429 or status_code >= 500:
                    if status_code == 429:
                        retry_after = parse_retry_after(response.headers.get("retry-after"))
                        generation_logger.rate_limit(provider, model, retry_after)
                    generation_logger.api_call_error(
                        provider, model, duration_ms, status_code,
                        f"HTTP {status_code}", "ServerError" if status_code >= 500 else "RateLimit",
                    )
                    await breaker.record_failure()
                    if attempt < self._max_retries:
                        await self._backoff(provider, attempt, status_code)
                        continue
                    raise ProviderError(
                        f"{provider} request failed ({status_code})",
                        provider=provider,
                        status_code=status_code,
                    )

                data = _json_or_none(response)

                if status_code >= 400:
                    detail = strategy.error_message(data) or "client error"
                    generation_logger.api_call_error(
                        provider, model, duration_ms, status_code, detail, "ClientError"
                    )
                    raise ProviderError(
                        f"{provider} request failed ({status_code}): {detail}",
                        provider=provider,
                        status_code=status_code,
                    )

                if not isinstance(data, dict):
                    await breaker.record_failure()
                    raise ProviderError(
                        f"{provider} returned a non-JSON reply", provider=provider
                    )

                text, tokens_used = strategy.parse(data)
                if not text.strip():
                    await breaker.record_failure()
                    raise ProviderError(
                        f"{provider} returned an empty completion", provider=provider
                    )

                await breaker.record_success()
                total_ms = (time.monotonic() - start_time) * 1000
                generation_logger.api_call_success(provider, model, total_ms, tokens_used)
                generation_logger.response_body(provider, model, text)
                return GenerationResult(
                    text=text,
                    tokens_used=tokens_used,
                    provider=provider,
                    model=model,
                    duration_ms=total_ms,
                )

        raise ProviderError(f"{provider} request failed after retries", provider=provider)

    async def _backoff(self, provider: str, attempt: int, status_code: int | None) -> None:
        delay = self._retry_delay * (2**attempt)
        logger.warning(
            f"Generation attempt {attempt + 1} failed, retrying in {delay}s",
            extra={
                "provider": provider,
                "attempt": attempt + 1,
                "max_retries": self._max_retries,
                "delay_seconds": delay,
                "status_code": status_code,
            },
        )
        await asyncio.sleep(delay)


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def parse_retry_after(value: str | None) -> float | None:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date).

    Unreadable values give None.
    """
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


generative_provider: GenerativeProvider | None = None


def get_generative_provider() -> GenerativeProvider:
    """Process-wide provider (keeps circuit breaker state between jobs)."""
    global generative_provider
    if generative_provider is None:
        generative_provider = GenerativeProvider()
    return generative_provider
