import asyncio
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

import structlog

from core.errors import ProviderUnavailableError, QuotaExceededError
from models.types import AttemptOutcome, ProviderAttempt

logger = structlog.get_logger()

T = TypeVar("T")


class Provider(Protocol):
    name: str
    metered: bool

    def is_configured(self) -> bool: ...


P = TypeVar("P", bound=Provider)


@dataclass
class FallbackOutcome(Generic[P, T]):
    value: T | None = None
    provider: P | None = None
    attempts: list[ProviderAttempt] = field(default_factory=list)


async def call_with_timeout(provider: str, coro: Coroutine[Any, Any, T], timeout: float) -> T:
    """Await a provider call; a timeout is reported as the provider being unavailable."""
    try:
        return await asyncio.wait_for(coro, timeout)
    except TimeoutError:
        raise ProviderUnavailableError(provider, f"timed out after {timeout:g}s") from None


async def run_fallback(
    providers: Sequence[P],
    attempt: Callable[[P], Awaitable[T | None]],
    *,
    skip_reason: Callable[[P], Awaitable[str | None]],
    on_quota_exceeded: Callable[[P], None],
) -> FallbackOutcome[P, T]:
    """Try providers in order and stop at the first non-None answer.

    ``attempt`` returning None means "no answer" and moves on, as does any
    ProviderUnavailableError. QuotaExceededError additionally triggers
    ``on_quota_exceeded`` so the metered provider is skipped from now on.
    """
    outcome: FallbackOutcome[P, T] = FallbackOutcome()

    for provider in providers:
        reason = await skip_reason(provider)
        if reason:
            outcome.attempts.append(
                ProviderAttempt(provider=provider.name, outcome=AttemptOutcome.SKIPPED, detail=reason)
            )
            continue

        try:
            value = await attempt(provider)
        except QuotaExceededError as e:
            logger.warning("Provider quota exceeded", provider=provider.name, error=e.message)
            on_quota_exceeded(provider)
            outcome.attempts.append(
                ProviderAttempt(
                    provider=provider.name, outcome=AttemptOutcome.QUOTA_EXCEEDED, detail=e.message
                )
            )
            continue
        except ProviderUnavailableError as e:
            logger.warning("Provider unavailable, falling back", provider=provider.name, error=e.message)
            outcome.attempts.append(
                ProviderAttempt(provider=provider.name, outcome=AttemptOutcome.FAILED, detail=e.message)
            )
            continue

        if value is None:
            outcome.attempts.append(ProviderAttempt(provider=provider.name, outcome=AttemptOutcome.EMPTY))
            continue

        outcome.attempts.append(ProviderAttempt(provider=provider.name, outcome=AttemptOutcome.SUCCESS))
        outcome.value = value
        outcome.provider = provider
        return outcome

    return outcome
