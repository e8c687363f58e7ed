"""Error taxonomy for a digest run."""

from __future__ import annotations


class DigestError(RuntimeError):
    """Base class for failures that abort a run."""


class InputError(DigestError):
    """No usable articles were supplied."""


class ModelCallError(DigestError):
    """A request to the generation service failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def retriable(self) -> bool:
        status = self.status_code
        return status is None or status == 429 or status >= 500


class TruncationError(ModelCallError):
    """The response stopped at the output-length ceiling."""

    @property
    def retriable(self) -> bool:
        return False


class EmptyResponseError(ModelCallError):
    """The response completed without any text."""


class MalformedOutputError(DigestError):
    """Structured output could not be parsed or did not match the schema."""
