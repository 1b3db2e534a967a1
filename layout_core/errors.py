"""
Errors Module
Exceptions raised by the layout comparison and calibration engine.
"""


class LayoutAnalysisError(Exception):
    """Base class for all engine errors."""


class InputError(LayoutAnalysisError, ValueError):
    """Malformed element tree, unusable viewport or invalid option."""


class InsufficientSamplesError(LayoutAnalysisError):
    """Raised when calibration is attempted with fewer than the required samples."""

    def __init__(self, received: int, required: int = 2):
        self.received = received
        self.required = required
        super().__init__(
            f"Stability analysis needs at least {required} layout summaries, got {received}"
        )
