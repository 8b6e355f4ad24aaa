"""Error taxonomy and recovery strategy for scene generation providers."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Error category types."""
    AUTHENTICATION_ERROR = "authentication_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    MODEL_ERROR = "model_error"
    QUALITY_REJECTED = "quality_rejected"
    PROCESSING_ERROR = "processing_error"


class SceneGenerationError(Exception):
    """Base class for every error raised by the generation pipeline."""


class ProviderError(SceneGenerationError):
    """A provider call failed."""

    category: ErrorCategory = ErrorCategory.PROCESSING_ERROR

    def __init__(self, message: str, *, provider: str = "", status_code: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    """Credential invalid or lacking permission for image generation."""

    category = ErrorCategory.AUTHENTICATION_ERROR


class ProviderQuotaError(ProviderError):
    """Rate limit or quota exhausted."""

    category = ErrorCategory.QUOTA_EXCEEDED


class ProviderTransientError(ProviderError):
    """Generic, retryable provider failure."""


class ImageQualityReject(SceneGenerationError):
    """Candidate image scored too low. Never escapes the orchestrator."""

    category = ErrorCategory.QUALITY_REJECTED

    def __init__(self, message: str, score: int = 0):
        super().__init__(message)
        self.score = score


class GenerationCancelled(SceneGenerationError):
    """The batch was cancelled or ran past its deadline."""


class AllProvidersExhausted(SceneGenerationError):
    """Primary cascade and fallback both failed for one scene."""

    def __init__(
        self,
        scene: str,
        primary_error: Optional[BaseException],
        fallback_error: Optional[BaseException],
    ):
        self.scene = scene
        self.primary_error = primary_error
        self.fallback_error = fallback_error
        self.category = (
            ErrorAnalyzer.categorize_error(primary_error)
            if primary_error is not None
            else ErrorCategory.PROCESSING_ERROR
        )
        super().__init__(self.help_text())

    def help_text(self) -> str:
        """User-facing description of why the scene could not be generated."""
        primary_message = str(self.primary_error) if self.primary_error else "Unknown error"
        fallback_message = str(self.fallback_error) if self.fallback_error else "not attempted"

        text = f"Failed to generate {self.scene} scene.\n"
        if self.category == ErrorCategory.AUTHENTICATION_ERROR:
            text += (
                "Your Gemini API key may be invalid or lack image generation access. "
                "Ensure it supports Gemini 3 Pro Image or Gemini 2.5 Flash Image."
            )
        elif self.category in (ErrorCategory.QUOTA_EXCEEDED, ErrorCategory.RATE_LIMIT):
            text += "Gemini rate limit reached. Wait a moment and try again."
        else:
            text += f"Primary: {primary_message}. Fallback: {fallback_message}"
        return text


class ErrorAnalyzer:
    """Analyzes errors to determine appropriate recovery strategies."""

    # Last-resort text heuristics, consulted only when no structured type or status exists
    ERROR_PATTERNS = {
        ErrorCategory.AUTHENTICATION_ERROR: [
            'api key', 'authentication', 'unauthorized', 'forbidden', 'permission',
            '401', '403', 'access denied', 'invalid token',
        ],
        ErrorCategory.QUOTA_EXCEEDED: [
            'quota', 'limit exceeded', 'usage limit', 'billing', 'resource_exhausted',
        ],
        ErrorCategory.RATE_LIMIT: [
            'rate limit', 'too many requests', 'requests per minute', 'throttled', '429',
        ],
        ErrorCategory.TIMEOUT: [
            'timeout', 'timed out', 'deadline exceeded',
        ],
        ErrorCategory.NETWORK_ERROR: [
            'connection error', 'network error', 'connection refused',
            'connection reset', 'dns', 'unreachable',
        ],
        ErrorCategory.MODEL_ERROR: [
            'model not found', 'invalid model', 'model unavailable',
            'content policy', 'safety filter', 'blocked',
        ],
    }

    @staticmethod
    def classify_status_code(status_code: int | None) -> ErrorCategory | None:
        """Structured classification from an HTTP status code."""
        if status_code is None:
            return None
        if status_code in (401, 403):
            return ErrorCategory.AUTHENTICATION_ERROR
        if status_code == 429:
            return ErrorCategory.QUOTA_EXCEEDED
        if status_code in (408, 504):
            return ErrorCategory.TIMEOUT
        if status_code == 404:
            return ErrorCategory.MODEL_ERROR
        return ErrorCategory.PROCESSING_ERROR

    @classmethod
    def categorize_message(cls, error_text: str) -> ErrorCategory | None:
        """Substring heuristic over an error message."""
        error_text = error_text.lower()
        for category, patterns in cls.ERROR_PATTERNS.items():
            for pattern in patterns:
                if pattern in error_text:
                    return category
        return None

    @classmethod
    def categorize_error(cls, error: BaseException, error_message: str | None = None) -> ErrorCategory:
        """Categorize an error: typed errors first, then status codes, then message text."""
        if isinstance(error, AllProvidersExhausted):
            return error.category
        if isinstance(error, (ProviderAuthError, ProviderQuotaError, ImageQualityReject)):
            return error.category

        structured = cls.classify_status_code(getattr(error, "status_code", None))
        if structured is not None and structured != ErrorCategory.PROCESSING_ERROR:
            return structured

        from_text = cls.categorize_message(error_message or str(error))
        if from_text is not None:
            return from_text

        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return ErrorCategory.TIMEOUT
        elif isinstance(error, (ConnectionError, OSError)):
            return ErrorCategory.NETWORK_ERROR
        return ErrorCategory.PROCESSING_ERROR

    @staticmethod
    def error_for_category(
        category: ErrorCategory,
        message: str,
        *,
        provider: str = "",
        status_code: int | None = None,
    ) -> ProviderError:
        if category == ErrorCategory.AUTHENTICATION_ERROR:
            error_cls = ProviderAuthError
        elif category in (ErrorCategory.QUOTA_EXCEEDED, ErrorCategory.RATE_LIMIT):
            error_cls = ProviderQuotaError
        else:
            error_cls = ProviderTransientError
        return error_cls(message, provider=provider, status_code=status_code)

    @classmethod
    def error_for_status(cls, status_code: int, message: str, *, provider: str = "") -> ProviderError:
        """Translate a non-success HTTP response into the taxonomy."""
        category = cls.classify_status_code(status_code)
        if category == ErrorCategory.PROCESSING_ERROR:
            category = cls.categorize_message(message) or category
        return cls.error_for_category(category, message, provider=provider, status_code=status_code)

    @classmethod
    def to_provider_error(
        cls,
        error: BaseException,
        *,
        provider: str = "",
        status_code: int | None = None,
        message: str | None = None,
    ) -> ProviderError:
        """Wrap any provider failure in the matching taxonomy type."""
        if isinstance(error, ProviderError):
            return error

        text = message or str(error) or type(error).__name__
        if status_code is not None:
            return cls.error_for_status(status_code, text, provider=provider)
        return cls.error_for_category(
            cls.categorize_error(error, text), text, provider=provider
        )


@dataclass
class RecoveryAction:
    """Defines a recovery action for a failed provider attempt."""
    action_type: str  # retry, next_model, abort_primary
    delay_seconds: float = 0.0


class RecoveryStrategy:
    """Defines recovery strategies for different provider errors."""

    @classmethod
    def get_recovery_action(
        cls,
        error: ProviderError,
        attempt_number: int,
        max_attempts: int,
        base_delay: float = 1.0,
    ) -> RecoveryAction:
        # Every model variant shares the credential
        if isinstance(error, ProviderAuthError):
            return RecoveryAction(action_type="abort_primary")

        # Another model may still have quota
        if isinstance(error, ProviderQuotaError):
            return RecoveryAction(action_type="next_model")

        if attempt_number < max_attempts:
            delay = base_delay * (2 ** (attempt_number - 1)) if base_delay > 0 else 0.0
            return RecoveryAction(action_type="retry", delay_seconds=min(10.0, delay))
        return RecoveryAction(action_type="next_model")


@asynccontextmanager
async def error_monitoring_context(name: str):
    """Context manager for monitoring errors in a code block."""
    start_time = time.time()
    errors_caught: list[Dict[str, Any]] = []

    try:
        logger.info(f"Starting monitored operation: {name}")
        yield errors_caught

    except Exception as e:
        errors_caught.append({
            'error': str(e),
            'type': type(e).__name__,
            'category': ErrorAnalyzer.categorize_error(e),
            'timestamp': time.time()
        })
        logger.error(f"Error in monitored operation {name}: {str(e)}")
        raise

    finally:
        duration = time.time() - start_time
        logger.info(
            f"Monitored operation {name} completed in {duration:.2f}s "
            f"with {len(errors_caught)} errors"
        )
