"""Exception hierarchy for the blueprint research pipeline."""

from __future__ import annotations


class BlueprintError(Exception):
    """Base class for every error raised by the research core."""


class JSONExtractionError(BlueprintError):
    """Raised when no JSON object can be recovered from a model response."""

    def __init__(self, section: str, preview: str = "") -> None:
        self.section = section
        self.preview = preview[:200]
        message = f"Failed to extract JSON from {section} response"
        if self.preview:
            message = f"{message}: {self.preview}"
        super().__init__(message)


class SchemaValidationError(BlueprintError):
    """Raised when a required top-level key is missing from a section payload."""

    def __init__(self, section: str, detail: str) -> None:
        self.section = section
        self.detail = detail
        super().__init__(f"Invalid {section} response: {detail}")


class ResearchTimeoutError(BlueprintError):
    """Raised when a model call exceeds its per-section deadline."""

    def __init__(self, section: str, timeout: float) -> None:
        self.section = section
        self.timeout = timeout
        super().__init__(f"{section} research timed out after {timeout:g}s")


class ResearchRequestError(BlueprintError):
    """Raised when the research model call fails for a non-timeout reason."""


class MissingCredentialsError(BlueprintError):
    """Raised when an external collaborator has no API key configured."""


class UpstreamServiceError(BlueprintError):
    """Raised by enrichment collaborators (ad library, scraper) on HTTP failures."""

    def __init__(self, service: str, message: str, status_code: int | None = None) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")

    @property
    def transient(self) -> bool:
        """True for statuses worth retrying (rate limits and server errors)."""

        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class GenerationCancelled(BlueprintError):
    """Raised internally when the caller's cancel signal fires between sections."""
