"""Error types raised by the layout resolver and the transformation passes.

Two kinds exist.  ``ConfigurationError`` is raised synchronously while a
pass, layout or profile is being constructed, before any data is touched.
``ProcessingError`` is raised while running on input that is malformed or
cannot be satisfied.  Neither is caught inside the pipeline; the caller
decides how to report them.
"""
from __future__ import annotations


class MusicboxError(Exception):
    """Base class for all musicbox failures."""


class ConfigurationError(MusicboxError):
    """A required construction parameter is missing or invalid.

    ``details`` lists every validation failure so the caller can report
    them all at once.
    """

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        self.details = details or []
        if self.details:
            message = f"{message}: {'; '.join(self.details)}"
        super().__init__(message)


class LayoutError(ConfigurationError):
    """A layout description cannot produce a key grid."""


class ProcessingError(MusicboxError):
    """Run-time input is malformed or cannot be satisfied."""


class ConversionError(ProcessingError):
    """A pitch has no key on the current profile."""

    def __init__(self, pitch: int) -> None:
        self.pitch = pitch
        super().__init__(f"Note cannot be converted to a key: {pitch}")
