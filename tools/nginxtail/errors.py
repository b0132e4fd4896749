"""
Exception types shared across nginxtail.

Only conditions that a caller is expected to react to get their own type.
Per-file problems inside a tailer are logged where they happen and never
raised past the tailer thread.
"""


class NginxTailError(Exception):
    """Base class for errors surfaced to the operator (non-zero exit)."""


class NoLogFilesError(NginxTailError):
    """Discovery found nothing that can be followed."""

    def __init__(self) -> None:
        super().__init__("No useable log files found")


class StatusCodeNotFound(ValueError):
    """
    A line did not contain a recognizable status code.

    Attributes:
        reason: Short diagnostic code describing where extraction stopped:
            "?A" no opening quote, "?B" no closing quote,
            "?C" no space after the status code, "?D"/"?E" the line ends
            right after a quote.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
