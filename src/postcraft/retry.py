from __future__ import annotations

from typing import Protocol

import structlog

from .metrics import completion_attempts_total, completion_escalations_total
from .models import CompletionAttempt, CompletionEnvelope, CompletionRequest, FinishReason
from .request_builder import escalate_request

log = structlog.get_logger()

MAX_ATTEMPTS = 2


class CompletionSender(Protocol):
    async def complete(self, request: CompletionRequest) -> CompletionEnvelope: ...


def should_escalate(attempt: CompletionAttempt) -> bool:
    if attempt.attempt_number >= MAX_ATTEMPTS:
        return False
    return not attempt.raw_text.strip() or attempt.finish_reason is FinishReason.LENGTH


class RetryController:
    """
    Two-state attempt loop around a completion sender.

    Attempt 1 uses the baseline request. An empty or truncated answer earns one
    escalated attempt; anything else ends the loop. Upstream HTTP failures are
    not retried and propagate as raised.
    """

    def __init__(self, sender: CompletionSender):
        self._sender = sender

    async def run(self, request: CompletionRequest) -> list[CompletionAttempt]:
        history: list[CompletionAttempt] = []
        current = request
        for number in range(1, MAX_ATTEMPTS + 1):
            envelope = await self._sender.complete(current)
            attempt = CompletionAttempt(
                attempt_number=number,
                request=current,
                raw_text=envelope.content,
                finish_reason=envelope.finish_reason,
            )
            history.append(attempt)
            completion_attempts_total.labels(
                dialect=current.dialect.value, finish_reason=attempt.finish_reason.value
            ).inc()
            log.info(
                "completion_attempt",
                attempt=number,
                model=current.model,
                budget=current.output_budget,
                finish_reason=attempt.finish_reason.value,
                content_chars=len(attempt.raw_text),
            )

            if attempt.succeeded or not should_escalate(attempt):
                break

            current = escalate_request(current)
            completion_escalations_total.labels(dialect=current.dialect.value).inc()
            log.info(
                "completion_escalated",
                reason="empty" if not attempt.raw_text.strip() else attempt.finish_reason.value,
                budget=current.output_budget,
            )
        return history
