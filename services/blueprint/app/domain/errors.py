"""Error taxonomy for generation and document lifecycle."""
from __future__ import annotations


class BlueprintError(Exception):
    """Base class for all domain errors."""


class GenerationError(BlueprintError):
    """A provider call for one document did not produce content."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class RateLimited(GenerationError):
    """Provider reported a quota or too-many-requests condition."""


class ProviderError(GenerationError):
    """Non-retryable provider failure (bad request, model, revoked key)."""

    def __init__(self, message: str, provider: str | None = None, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message, provider)


class NetworkError(GenerationError):
    """Transport-level failure talking to a provider."""


class ConfigError(GenerationError):
    """No credentials for the selected provider and no offline fallback."""


class ConcurrentGenerationError(BlueprintError):
    """A generation for this document is already in flight."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Generation already in progress for {document_id}")


class InvalidTransitionError(BlueprintError):
    """Raised when a lifecycle transition is not allowed from the current state."""

    def __init__(self, document_id: str, from_status: str, operation: str) -> None:
        self.document_id = document_id
        self.from_status = from_status
        self.operation = operation
        super().__init__(f"Invalid transition: {operation} from {from_status} (document: {document_id})")


class SectionReconstructionError(BlueprintError):
    """Splitting and re-joining a document did not reproduce it."""


class SectionNotFoundError(BlueprintError, LookupError):
    pass


class StaleSectionError(BlueprintError):
    """The section changed while a refinement was in flight."""


class UnknownProjectError(BlueprintError, LookupError):
    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found")


class UnknownTemplateError(BlueprintError, LookupError):
    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(f"Template {template_id} not found")


__all__ = [
    "BlueprintError",
    "ConcurrentGenerationError",
    "ConfigError",
    "GenerationError",
    "InvalidTransitionError",
    "NetworkError",
    "ProviderError",
    "RateLimited",
    "SectionNotFoundError",
    "SectionReconstructionError",
    "StaleSectionError",
    "UnknownProjectError",
    "UnknownTemplateError",
]
