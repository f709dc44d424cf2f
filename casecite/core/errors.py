"""Error taxonomy shared by the resolver, orchestrator and store."""


class CaseCiteError(Exception):
    """Base error carrying a short user-facing message and optional detail."""

    status_code = 500

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self) -> dict:
        """Render as the ``{"message", "details"}`` body returned to callers."""
        body = {"message": self.message}
        if self.details:
            body["details"] = self.details
        return body


# ── Rejected before any state transition ────────────────────────────


class ValidationError(CaseCiteError):
    status_code = 400


class AccessDenied(CaseCiteError):
    status_code = 403


class NotFound(CaseCiteError):
    status_code = 404


# ── Contained inside the literature resolver ─────────────────────────


class ResolverProviderError(CaseCiteError):
    """A bibliographic provider failed or answered with a non-success status."""

    status_code = 502

    def __init__(self, provider: str, message: str, details: str | None = None):
        super().__init__(message, details)
        self.provider = provider


# ── Propagated out of the orchestrator ───────────────────────────────


class GenerationError(CaseCiteError):
    """The text-generation call failed or returned unusable output."""

    status_code = 502


class PersistenceError(CaseCiteError):
    """A database write failed."""

    status_code = 500
