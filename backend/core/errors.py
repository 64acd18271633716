class LocationError(Exception):
    """Base class for location-resolution failures."""


class InvalidInputError(LocationError, ValueError):
    """Rejected before any network call (empty address, bad coordinates, bad count)."""


class ProviderUnavailableError(LocationError):
    """A provider could not answer: transport failure, timeout, malformed or refused response."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"[{provider}] {message}")


class QuotaExceededError(ProviderUnavailableError):
    """The provider (or the ledger pre-flight) reports the monthly quota is used up."""


class UnresolvableError(LocationError):
    """Every provider in the chain failed."""


class LedgerWriteError(LocationError):
    """A quota ledger write failed. Never propagated to geocode/distance callers."""


def redact(message: str, *secrets: str) -> str:
    """Strip credential material from a message before it is logged or raised."""
    for secret in secrets:
        if secret:
            message = message.replace(secret, "***")
    return message
