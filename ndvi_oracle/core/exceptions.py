"""Unified oracle exception taxonomy.

Every failure raised by the oracle inherits from ``PipelineError`` and
carries structured context (stage, code, retryability) so that the host
can report a stable error payload for a failed invocation.

Taxonomy categories
-------------------
An invocation runs once.  Nothing inside the oracle retries, so
``retryable`` is advice to whoever fires the next trigger, and the
category decides the HTTP status the host returns.

- ``ValidationError``   (400) the query, scene or band asset is unusable.
  Re-running the same trigger fails the same way.
- ``ContractError``     (400) the trigger envelope itself is malformed.
- ``TransientError``    (502) the search API, a band host or the storage
  backend misbehaved.  A band download failure is absorbed by the sample
  fallback when it is enabled; every other transient failure ends the run.
- ``PermanentError``    (502) no scenes matched, the grid could not be
  encoded, or the configuration is unusable.  Fix the input or settings
  before firing again.

Every exception exposes ``to_error_dict()`` for logging and for the
host's failure response.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for all oracle errors.

    Attributes:
        message: Human-readable error description.
        stage: Pipeline stage where the error occurred
            (e.g. ``"search_catalog"``, ``"fetch_band"``).
        code: Machine-readable error code (e.g. ``"SEARCH_API_FAILED"``).
        retryable: Whether a fresh invocation could plausibly succeed.
        correlation_id: Trigger identifier of the failed invocation.
    """

    #: Default stage for subclasses (override via class attribute or kwarg).
    default_stage: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool = False,
        correlation_id: str = "",
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = retryable
        self.correlation_id = correlation_id
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ContractError):
            return "contract"
        if isinstance(self, ValidationError):
            return "validation"
        if isinstance(self, TransientError):
            return "transient"
        if isinstance(self, PermanentError):
            return "permanent"
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
            "correlation_id": self.correlation_id,
        }


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class ValidationError(PipelineError):
    """The query, selected scene or band asset cannot be used.

    Raised before any band download where possible, so a rejected run
    costs at most the search request.  Never retryable.
    """

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransientError(PipelineError):
    """Search, band or storage upstream failed for this invocation.

    Retryable by default; subclasses narrow it by status (a 404 band asset
    is not).  The run still aborts, except for band fetches covered by the
    sample fallback.
    """

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class PermanentError(PipelineError):
    """The run cannot succeed with this input or configuration. Not retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class ContractError(PipelineError):
    """Malformed trigger envelope or output crossing the host boundary. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class SerializationError(PermanentError):
    """Raised when a result or metadata document cannot be serialised."""

    default_stage = "serialize"
    default_code = "SERIALIZATION_FAILED"
