"""
Exceptions raised past the acquisition layer.

Upstream faults inside a strategy never surface as exceptions; these cover the
outer operations that have to report a failure to their caller.
"""

from __future__ import annotations


class BicifinderError(Exception):
    """Base class for bicifinder errors."""


class VocabularyUnavailableError(BicifinderError):
    """A vocabulary list could not be fetched and no cached copy exists."""

    def __init__(self, kind: str, reason: str):
        super().__init__(f"{kind} vocabulary unavailable: {reason}")
        self.kind = kind
        self.reason = reason


class ImageRelayError(BicifinderError):
    """The image relay could not serve the requested image."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class DisallowedImageSourceError(ImageRelayError):
    """The requested image is not hosted on an allowed upstream host."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)
