"""Exception hierarchy for records-recon."""

from __future__ import annotations


class ReconError(Exception):
    """Base exception for all records-recon errors."""


class InputValidationError(ReconError):
    """Raised when a scan request cannot be accepted (no files, oversized file)."""


class DecodeError(ReconError):
    """Raised when the primary PDF decoder cannot read a document."""


class LLMClientError(ReconError):
    """Raised when a call to the completion service fails."""

    def __init__(self, message: str, label: str = "") -> None:
        super().__init__(message)
        self.label = label


class LLMTimeoutError(LLMClientError):
    """Overall or idle deadline exceeded while streaming a completion.

    ``kind`` is ``"overall"`` or ``"idle"``.
    """

    def __init__(self, label: str, timeout_s: float, kind: str = "overall") -> None:
        super().__init__(f"{label} timed out after {timeout_s:g}s ({kind} deadline)", label=label)
        self.timeout_s = timeout_s
        self.kind = kind


class LLMServiceError(LLMClientError):
    """Non-timeout failure: HTTP error, auth error, malformed stream."""


class JSONParseError(ReconError):
    """LLM response could not be parsed as JSON."""

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response
