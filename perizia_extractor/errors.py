"""Error taxonomy for the perizia pipeline"""
from typing import Any, Dict, List, Optional


class PeriziaError(Exception):
    """Base class for every error raised by the pipeline."""

    reason = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.reason, "message": self.message}


class InvalidDocument(PeriziaError):
    """Input bytes are not a PDF."""

    reason = "invalid_document"


class DocumentTooLarge(InvalidDocument):
    """Input exceeds the configured size limit."""

    reason = "document_too_large"

    def __init__(self, size_bytes: int, limit_bytes: int):
        super().__init__(
            f"PDF troppo grande: {size_bytes / (1024 * 1024):.1f} MB "
            f"(massimo {limit_bytes // (1024 * 1024)} MB)"
        )
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


class AllEnginesFailed(PeriziaError):
    """Every text extraction strategy raised."""

    reason = "all_engines_failed"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Nessun motore di estrazione ha funzionato: " + " | ".join(self.errors))

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class QualityRejected(PeriziaError):
    """The text layer is unusable and cannot be recovered."""

    reason = "quality_rejected"

    def __init__(self, reason_tag: str, message: str,
                 metrics: Optional[Dict[str, Any]] = None,
                 preview: str = ""):
        super().__init__(message)
        self.reason_tag = reason_tag
        self.metrics = metrics or {}
        self.preview = preview

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "reason_tag": self.reason_tag,
            "metrics": self.metrics,
            "preview": self.preview,
        })
        return data


class RenderFailure(PeriziaError):
    """A single page could not be rasterized."""

    reason = "render_failure"

    def __init__(self, message: str, page: Optional[int] = None):
        super().__init__(message if page is None else f"pagina {page}: {message}")
        self.page = page


class CompletionError(PeriziaError):
    """The external completion capability failed."""

    reason = "completion_error"


class RateLimited(CompletionError):
    """The completion capability answered with a rate limit."""

    reason = "rate_limited"

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class CompletionTimeout(CompletionError):
    """The completion call exceeded its wall-clock budget."""

    reason = "completion_timeout"


class SchemaInvalid(PeriziaError):
    """Downstream model output failed structural validation."""

    reason = "schema_invalid"

    def __init__(self, issues: List[Any], raw: str = ""):
        super().__init__("Risposta del modello non conforme allo schema")
        self.issues = list(issues)
        self.raw = raw

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["issues"] = self.issues
        return data


class DebugImageError(PeriziaError):
    """A debug image request was rejected or the image does not exist."""

    reason = "debug_image_error"

    def __init__(self, message: str, not_found: bool = False):
        super().__init__(message)
        self.not_found = not_found
