from __future__ import annotations


class ReviewGenError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(ReviewGenError):
    """Missing prompt templates or provider profiles. Raised before any provider call."""


class ProviderError(ReviewGenError):
    """A single adapter call failed (auth, quota, transport, malformed response)."""

    def __init__(self, message: str, provider: str = "", model: str = "") -> None:
        self.provider = provider
        self.model = model
        prefix = f"{provider}/{model}: " if provider else ""
        super().__init__(f"{prefix}{message}")


class AllProvidersFailedError(ProviderError):
    """Primary and (if configured) fallback both failed."""

    def __init__(self, attempts: list[tuple[str, Exception]]) -> None:
        self.attempts = attempts
        details = "; ".join(f"{role} failed ({err})" for role, err in attempts)
        super().__init__(f"All AI providers failed: {details}")


class SessionAbortError(ReviewGenError):
    """A generation stage failed and the whole session was discarded."""

    def __init__(self, stage: str, cause: Exception) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"Content generation failed at stage '{stage}': {cause}")
