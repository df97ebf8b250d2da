"""Configuration objects for stage transfers and batch inserts."""

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Optional

from sqlstage.exceptions import ImproperConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = ("DEFAULT_UPLOAD_PATH", "RetryPolicy", "StageConfig")

DEFAULT_UPLOAD_PATH = "/v1/upload_to_stage"
DEFAULT_CHUNK_SIZE = 65536


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for a single transfer request.

    Both ceilings apply: the budget is exhausted once ``max_attempts`` attempts
    were made or ``max_elapsed`` seconds passed since the first attempt,
    whichever comes first. The wait before retry ``n`` is ``n * backoff_step``.
    """

    max_attempts: int = 5
    max_elapsed: float = 300.0
    backoff_step: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ImproperConfigurationError(msg)
        if self.max_elapsed <= 0:
            msg = f"max_elapsed must be positive, got {self.max_elapsed}"
            raise ImproperConfigurationError(msg)
        if self.backoff_step < 0:
            msg = f"backoff_step must not be negative, got {self.backoff_step}"
            raise ImproperConfigurationError(msg)

    @classmethod
    def from_features(cls, features: "Mapping[str, Any]") -> "RetryPolicy":
        """Build a retry policy from a feature mapping."""
        return cls(
            max_attempts=int(features.get("max_attempts", cls.max_attempts)),
            max_elapsed=float(features.get("max_elapsed", cls.max_elapsed)),
            backoff_step=float(features.get("backoff_step", cls.backoff_step)),
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before the retry that follows ``attempt`` attempts."""
        return attempt * self.backoff_step

    def is_exhausted(self, attempts: int, elapsed: float) -> bool:
        return attempts >= self.max_attempts or elapsed >= self.max_elapsed


@dataclass(slots=True)
class StageConfig:
    """Settings shared by the stage transfer client and batch statements."""

    presigned_url_disabled: bool = False
    upload_path: str = DEFAULT_UPLOAD_PATH
    default_stage: str = "~"
    chunk_size: int = DEFAULT_CHUNK_SIZE
    temp_dir: Optional[str] = None
    null_literal: str = "\\N"
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            msg = f"chunk_size must be positive, got {self.chunk_size}"
            raise ImproperConfigurationError(msg)
        if not self.upload_path.startswith("/"):
            self.upload_path = f"/{self.upload_path}"

    @classmethod
    def from_features(cls, features: "Mapping[str, Any]") -> "StageConfig":
        """Build a stage configuration from a feature mapping.

        Retry keys (``max_attempts``, ``max_elapsed``, ``backoff_step``) may be given
        at the top level or nested under ``retry``.
        """
        retry_features = features.get("retry")
        retry = RetryPolicy.from_features(retry_features if retry_features is not None else features)
        return cls(
            presigned_url_disabled=_as_bool(features.get("presigned_url_disabled", False)),
            upload_path=str(features.get("upload_path", DEFAULT_UPLOAD_PATH)),
            default_stage=str(features.get("default_stage", "~")),
            chunk_size=int(features.get("chunk_size", DEFAULT_CHUNK_SIZE)),
            temp_dir=features.get("temp_dir"),
            null_literal=str(features.get("null_literal", "\\N")),
            retry=retry,
        )

    def copy(self, **changes: Any) -> "StageConfig":
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)
