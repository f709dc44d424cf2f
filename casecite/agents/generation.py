"""Text generation through Ollama, with one usage-log entry per attempt."""

import logging
import time

import ollama

from casecite.agents.models import (
    ChatMessage,
    GenerationResult,
    TokenUsage,
    UsageContext,
)
from casecite.core.errors import GenerationError
from casecite.core.models import UsageLogEntry
from casecite.core.settings import GenerationSettings, PricingSettings
from casecite.core.usage_log import UsageLogger, estimate_cost_usd

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1500


class TextGenerator:
    """Single-shot chat completion. No retries; failures raise GenerationError."""

    def __init__(
        self,
        settings: GenerationSettings,
        pricing: PricingSettings,
        usage_logger: UsageLogger | None = None,
        client: ollama.Client | None = None,
    ):
        self.settings = settings
        self.pricing = pricing
        self.usage_logger = usage_logger
        self.client = client or ollama.Client(host=settings.host)

    def generate(
        self,
        messages: list[ChatMessage],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        response_format: str | dict | None = None,
        metadata: UsageContext | None = None,
    ) -> GenerationResult:
        """Run one chat call.

        ``response_format`` is the structured-output hint: ``"json"`` or a JSON
        schema dict. When ``metadata`` is given, the attempt is written to the
        usage log whether it succeeds or fails.
        """
        model = model or self.settings.default_model
        if temperature is None:
            temperature = self.settings.default_temperature

        started = time.monotonic()
        try:
            response = self.client.chat(
                model=model,
                messages=[m.model_dump() for m in messages],
                format=response_format,
                options={"temperature": temperature, "num_predict": max_tokens},
                think=False,
            )
        except Exception as exc:
            self._record(metadata, model, started, error=str(exc))
            raise GenerationError("Text generation failed", details=str(exc)) from exc

        content = (response.message.content or "").strip()
        if not content:
            self._record(metadata, model, started, error="Empty response")
            raise GenerationError("Text generation returned an empty response")

        usage = _usage_from_response(response)
        duration_ms = self._record(metadata, model, started, usage=usage)
        return GenerationResult(
            text=content, usage=usage, model=model, duration_ms=duration_ms
        )

    def _record(
        self,
        metadata: UsageContext | None,
        model: str,
        started: float,
        usage: TokenUsage | None = None,
        error: str | None = None,
    ) -> int:
        duration_ms = int((time.monotonic() - started) * 1000)
        if metadata is None or self.usage_logger is None:
            return duration_ms

        if error is not None:
            entry = UsageLogEntry(
                case_id=metadata.case_id,
                username=metadata.username,
                action=metadata.action,
                status="error",
                model=model,
                duration_ms=duration_ms,
                error_message=error,
            )
        else:
            entry = UsageLogEntry(
                case_id=metadata.case_id,
                username=metadata.username,
                action=metadata.action,
                status="success",
                model=model,
                duration_ms=duration_ms,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
                cost_usd=estimate_cost_usd(
                    usage.prompt_tokens, usage.completion_tokens, self.pricing
                ),
            )
        self.usage_logger.log_ai_event(entry)
        return duration_ms


# ── Helpers ──────────────────────────────────────────────────────────


def _usage_from_response(response) -> TokenUsage:
    """Map Ollama's eval counters onto prompt/completion/total tokens."""
    prompt = getattr(response, "prompt_eval_count", None)
    completion = getattr(response, "eval_count", None)
    prompt = prompt if isinstance(prompt, int) else None
    completion = completion if isinstance(completion, int) else None
    total = prompt + completion if prompt is not None and completion is not None else None
    return TokenUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)
