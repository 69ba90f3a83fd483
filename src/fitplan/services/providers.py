"""
Text-generation providers with retry, model fallback and auto-continuation.

Variants are selected once at startup by :func:`build_provider`:

- ``ChatCompletionProvider``: one OpenAI-compatible endpoint and model.
- ``MultiModelProvider``: ordered Generative Language (Gemini) candidates.
- ``MockProvider``: canned text, no network.
"""

from __future__ import annotations

import abc
import asyncio
import enum
import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, TypeVar
from urllib.parse import quote

import httpx
import openai
from openai import AsyncOpenAI

from ..config import SETTINGS, Config
from .prompts import CANNED_PREVIEW, CONTINUE_INSTRUCTION, Message

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRIABLE_STATUSES = frozenset({429, 500, 502, 503, 504})

# Errors a single provider call may raise
CALL_ERRORS: tuple[type[BaseException], ...] = (
    httpx.HTTPError,
    openai.OpenAIError,
    ValueError,  # undecodable response body
)


class FinishReason(str, enum.Enum):
    COMPLETE = "complete"
    TRUNCATED = "truncated"
    BLOCKED = "blocked"
    OTHER = "other"


class ProviderError(Exception):
    """Base class for generation provider failures."""


class ProviderExhausted(ProviderError):
    """Every candidate and retry failed and the provider is configured fail-closed."""


class ProviderBlocked(ProviderError):
    """The provider refused to generate content for a safety/policy reason."""

    def __init__(self, block_reason: str, model_id: str) -> None:
        super().__init__(f"generation blocked by {model_id}: {block_reason}")
        self.block_reason = block_reason
        self.model_id = model_id


class EmptyOutput(ProviderError):
    """A call succeeded but returned no text and no block reason."""


@dataclass(frozen=True)
class GenerationMeta:
    provider_kind: str
    model_id: str
    finish_reason: FinishReason
    block_reason: str | None = None
    continued_rounds: int = 0


@dataclass(frozen=True)
class GenerationResult:
    text: str
    meta: GenerationMeta

    @property
    def blocked(self) -> bool:
        return bool(self.meta.block_reason)

    def raise_for_block(self) -> None:
        if self.meta.block_reason:
            raise ProviderBlocked(self.meta.block_reason, self.meta.model_id)


@dataclass(frozen=True)
class Completion:
    """Outcome of a single network call."""

    text: str
    finish_reason: FinishReason
    block_reason: str | None = None


@dataclass(frozen=True)
class Candidate:
    api_base: str
    model_id: str


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def canned_result(provider_kind: str, model_id: str) -> GenerationResult:
    return GenerationResult(
        text=CANNED_PREVIEW,
        meta=GenerationMeta(
            provider_kind=provider_kind, model_id=model_id, finish_reason=FinishReason.COMPLETE
        ),
    )


@dataclass
class RetryPolicy:
    """
    Exponential backoff shared by every remote provider.

    ``max_retries`` counts retries after the first attempt. Delay for a given
    attempt is ``base_delay * 2**attempt`` plus up to ``jitter`` seconds.
    """

    max_retries: int = 3
    base_delay: float = 0.5
    jitter: float = 0.2
    retriable_statuses: frozenset[int] = RETRIABLE_STATUSES
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def delay(self, attempt: int) -> float:
        return self.base_delay * (2**attempt) + random.uniform(0, self.jitter)

    @staticmethod
    def status_of(exc: BaseException) -> int | None:
        if isinstance(exc, httpx.HTTPStatusError):
            return exc.response.status_code
        if isinstance(exc, openai.APIStatusError):
            return exc.status_code
        return None

    def is_retriable(self, exc: BaseException) -> bool:
        status = self.status_of(exc)
        if status is not None:
            return status in self.retriable_statuses
        # timeouts, connection resets and DNS failures
        return isinstance(
            exc, httpx.TimeoutException | httpx.NetworkError | openai.APIConnectionError
        )

    async def wait(self, attempt: int) -> float:
        delay = self.delay(attempt)
        await self.sleep(delay)
        return delay

    async def run(self, call: Callable[[], Awaitable[T]], *, label: str) -> T:
        """Await ``call`` until it succeeds, fails non-retriably, or retries run out."""
        attempt = 0
        while True:
            try:
                return await call()
            except CALL_ERRORS as exc:
                if not self.is_retriable(exc) or attempt >= self.max_retries:
                    raise
                logger.warning(
                    "%s failed on attempt %d/%d, retrying: %s",
                    label,
                    attempt + 1,
                    self.max_retries + 1,
                    exc,
                )
                await self.wait(attempt)
                attempt += 1


class GenerationProvider(abc.ABC):
    """Calls a text-generation backend."""

    kind: ClassVar[str]

    @abc.abstractmethod
    async def generate(
        self, messages: Sequence[Message], temperature: float = 0.6
    ) -> GenerationResult: ...

    async def list_models(self) -> list[dict[str, Any]]:
        return []

    async def aclose(self) -> None:
        return None


class MockProvider(GenerationProvider):
    """Canned response without any network call."""

    kind = "mock"

    async def generate(
        self, messages: Sequence[Message], temperature: float = 0.6
    ) -> GenerationResult:
        logger.info("External model disabled, returning canned response")
        return canned_result(self.kind, "mock")


class RemoteProvider(GenerationProvider):
    """
    Shared retry/continuation/exhaustion flow for network-backed providers.

    Subclasses implement :meth:`_complete` for one raw call against one
    candidate. Candidates are tried in order; the first with usable text wins.
    """

    def __init__(
        self,
        candidates: Sequence[Candidate],
        *,
        retry: RetryPolicy | None = None,
        max_continue_rounds: int = 1,
        fail_open: bool = False,
    ) -> None:
        if not candidates:
            raise ValueError("at least one candidate is required")
        self.candidates = list(candidates)
        self.retry = retry or RetryPolicy()
        self.max_continue_rounds = max_continue_rounds
        self.fail_open = fail_open

    @abc.abstractmethod
    async def _complete(
        self, candidate: Candidate, messages: Sequence[Message], temperature: float
    ) -> Completion: ...

    async def generate(
        self, messages: Sequence[Message], temperature: float = 0.6
    ) -> GenerationResult:
        last_error: BaseException | None = None
        for candidate in self.candidates:
            try:
                return await self._generate_with(candidate, messages, temperature)
            except (*CALL_ERRORS, EmptyOutput) as exc:
                last_error = exc
                logger.warning(
                    "%s candidate %s failed: %s", self.kind, candidate.model_id, exc
                )
                if self.retry.status_of(exc) == 404:
                    logger.info(
                        "Model %s not found at %s", candidate.model_id, candidate.api_base
                    )
        return self._exhausted(last_error)

    async def _generate_with(
        self, candidate: Candidate, messages: Sequence[Message], temperature: float
    ) -> GenerationResult:
        completion = await self.retry.run(
            lambda: self._complete(candidate, messages, temperature),
            label=f"{self.kind}:{candidate.model_id}",
        )

        if completion.block_reason:
            logger.warning(
                "%s output blocked (%s) by %s", self.kind, completion.block_reason, candidate.model_id
            )
            return GenerationResult(
                text=completion.text,
                meta=GenerationMeta(
                    provider_kind=self.kind,
                    model_id=candidate.model_id,
                    finish_reason=FinishReason.BLOCKED,
                    block_reason=completion.block_reason,
                ),
            )
        if not completion.text.strip():
            raise EmptyOutput(f"{candidate.model_id} returned no text")

        text, finish, rounds = completion.text, completion.finish_reason, 0
        if finish is FinishReason.TRUNCATED:
            text, finish, rounds = await self._continue(candidate, messages, temperature, text)

        logger.info(
            "%s generated %d chars with %s (finish=%s, continued=%d)",
            self.kind,
            len(text),
            candidate.model_id,
            finish.value,
            rounds,
        )
        return GenerationResult(
            text=text,
            meta=GenerationMeta(
                provider_kind=self.kind,
                model_id=candidate.model_id,
                finish_reason=finish,
                continued_rounds=rounds,
            ),
        )

    async def _continue(
        self,
        candidate: Candidate,
        messages: Sequence[Message],
        temperature: float,
        text: str,
    ) -> tuple[str, FinishReason, int]:
        """Ask for the rest of a truncated answer; keeps what it has on failure."""
        acc = text
        finish = FinishReason.TRUNCATED
        rounds = 0
        while rounds < self.max_continue_rounds:
            follow_up = [
                *messages,
                {"role": "assistant", "content": acc},
                {"role": "user", "content": CONTINUE_INSTRUCTION},
            ]
            try:
                piece = await self._complete(candidate, follow_up, temperature)
            except CALL_ERRORS as exc:
                logger.warning("Continuation call failed, keeping partial text: %s", exc)
                break
            if piece.block_reason:
                logger.warning("Continuation blocked (%s), keeping partial text", piece.block_reason)
                break
            rounds += 1
            acc += piece.text
            finish = piece.finish_reason
            if finish is not FinishReason.TRUNCATED:
                break
        return acc, finish, rounds

    def _exhausted(self, last_error: BaseException | None) -> GenerationResult:
        if self.fail_open:
            logger.warning("%s exhausted, failing open to canned response: %s", self.kind, last_error)
            return canned_result(self.kind, "fallback")
        logger.error("%s exhausted every candidate: %s", self.kind, last_error)
        raise ProviderExhausted(f"{self.kind} generation failed: {last_error}") from last_error


class ChatCompletionProvider(RemoteProvider):
    """Single OpenAI-compatible chat completions endpoint."""

    kind = "openai"

    _FINISH = {
        "stop": FinishReason.COMPLETE,
        "length": FinishReason.TRUNCATED,
        "content_filter": FinishReason.BLOCKED,
    }

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 120.0,
        max_tokens: int | None = None,
        http_client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__([Candidate(base_url.rstrip("/"), model)], **kwargs)
        self.max_tokens = max_tokens
        # SDK retries off: RetryPolicy owns retrying
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

    async def _complete(
        self, candidate: Candidate, messages: Sequence[Message], temperature: float
    ) -> Completion:
        params: dict[str, Any] = {
            "model": candidate.model_id,
            "messages": list(messages),
            "temperature": temperature,
        }
        if self.max_tokens:
            params["max_tokens"] = self.max_tokens
        resp = await self.client.chat.completions.create(**params)
        if not resp.choices:
            return Completion(text="", finish_reason=FinishReason.OTHER)
        choice = resp.choices[0]
        finish = self._FINISH.get(choice.finish_reason or "stop", FinishReason.OTHER)
        return Completion(
            text=choice.message.content or "",
            finish_reason=finish,
            block_reason=choice.finish_reason if finish is FinishReason.BLOCKED else None,
        )

    async def list_models(self) -> list[dict[str, Any]]:
        page = await self.client.models.list()
        return [{"id": m.id} for m in page.data]

    async def aclose(self) -> None:
        await self.client.close()


class MultiModelProvider(RemoteProvider):
    """
    Generative Language REST API with ordered (api base, model) candidates.

    A 404 means the model or API version is not available for this key, so
    the next candidate is tried straight away.
    """

    kind = "gemini"

    _SAFETY_FINISHES = frozenset({"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "RECITATION"})

    def __init__(
        self,
        candidates: Sequence[Candidate],
        *,
        api_key: str,
        timeout: float = 120.0,
        max_output_tokens: int = 4096,
        http_client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(candidates, **kwargs)
        self.api_key = api_key
        self.max_output_tokens = max_output_tokens
        self.client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    @staticmethod
    def _contents(messages: Sequence[Message]) -> list[dict[str, Any]]:
        """Collapse chat messages into Gemini contents; system text leads the first user turn."""
        system = "\n".join(
            m["content"].strip() for m in messages if m["role"] == "system" and m["content"].strip()
        )
        contents: list[dict[str, Any]] = []
        for m in messages:
            if m["role"] == "system":
                continue
            role = "model" if m["role"] == "assistant" else "user"
            text = m["content"]
            if contents and contents[-1]["role"] == role:
                contents[-1]["parts"][0]["text"] += "\n\n" + text
            else:
                contents.append({"role": role, "parts": [{"text": text}]})
        if system:
            if contents and contents[0]["role"] == "user":
                contents[0]["parts"][0]["text"] = f"{system}\n\n{contents[0]['parts'][0]['text']}"
            else:
                contents.insert(0, {"role": "user", "parts": [{"text": system}]})
        return contents

    async def _complete(
        self, candidate: Candidate, messages: Sequence[Message], temperature: float
    ) -> Completion:
        url = f"{candidate.api_base}/models/{quote(candidate.model_id, safe='')}:generateContent"
        body = {
            "contents": self._contents(messages),
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }
        r = await self.client.post(url, params={"key": self.api_key}, json=body)
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, dict):
            raise ValueError(f"malformed response from {candidate.model_id}")

        block_reason = _str_or_none(_mapping(data.get("promptFeedback")).get("blockReason"))
        candidates = data.get("candidates")
        first = _mapping(candidates[0]) if isinstance(candidates, list) and candidates else {}
        parts = _mapping(first.get("content")).get("parts")
        if not isinstance(parts, list):
            parts = []
        text = "".join(
            p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
        )
        raw_finish = _str_or_none(first.get("finishReason")) or ""

        if raw_finish in self._SAFETY_FINISHES and not text:
            block_reason = block_reason or raw_finish
        if block_reason:
            return Completion(text=text, finish_reason=FinishReason.BLOCKED, block_reason=block_reason)
        if raw_finish == "MAX_TOKENS":
            finish = FinishReason.TRUNCATED
        elif raw_finish in ("STOP", ""):
            finish = FinishReason.COMPLETE
        else:
            finish = FinishReason.OTHER
        return Completion(text=text, finish_reason=finish)

    async def list_models(self) -> list[dict[str, Any]]:
        base = self.candidates[0].api_base
        r = await self.client.get(f"{base}/models", params={"key": self.api_key})
        r.raise_for_status()
        models = _mapping(r.json()).get("models")
        if not isinstance(models, list):
            models = []
        return [
            {
                "name": m.get("name", ""),
                "methods": m.get("supportedGenerationMethods") or [],
            }
            for m in models
            if isinstance(m, dict)
        ]

    async def aclose(self) -> None:
        await self.client.aclose()


def build_provider(
    settings: Config = SETTINGS, http_client: httpx.AsyncClient | None = None
) -> GenerationProvider:
    """Select the provider variant from configuration. Called once at startup."""
    if not settings.EXTERNAL_MODEL:
        logger.info("EXTERNAL_MODEL is off, using mock provider")
        return MockProvider()

    common: dict[str, Any] = {
        "retry": RetryPolicy(
            max_retries=settings.AI_RETRY_MAX,
            base_delay=settings.AI_RETRY_BASE_DELAY,
            jitter=settings.AI_RETRY_JITTER,
        ),
        "max_continue_rounds": settings.AI_AUTO_CONTINUE_MAX_ROUNDS,
        "fail_open": settings.AI_FALLBACK_ON_ERROR,
        "http_client": http_client,
    }

    if settings.MODEL_PROVIDER == "gemini":
        if not settings.GEMINI_API_KEY:
            logger.warning("GEMINI_API_KEY not configured, using mock provider")
            return MockProvider()
        candidates = [
            Candidate(base, model)
            for base in settings.gemini_api_bases
            for model in settings.gemini_models
        ]
        logger.info("Using gemini provider with %d candidates", len(candidates))
        return MultiModelProvider(
            candidates,
            api_key=settings.GEMINI_API_KEY,
            timeout=settings.AI_TIMEOUT_SECONDS,
            max_output_tokens=settings.GEMINI_MAX_OUTPUT_TOKENS,
            **common,
        )

    if not settings.MODEL_API_KEY:
        logger.warning("MODEL_API_KEY not configured, using mock provider")
        return MockProvider()
    logger.info("Using openai provider with model %s", settings.MODEL_NAME)
    return ChatCompletionProvider(
        base_url=settings.MODEL_BASE_URL,
        api_key=settings.MODEL_API_KEY,
        model=settings.MODEL_NAME,
        timeout=settings.AI_TIMEOUT_SECONDS,
        max_tokens=settings.MODEL_MAX_TOKENS,
        **common,
    )
