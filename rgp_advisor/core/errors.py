"""
Error types raised by the decision engine.
"""


class RgpAdvisorError(Exception):
    """Base class for fatal decision-engine failures."""


class InvalidInputError(RgpAdvisorError, ValueError):
    """Raised when a required calculator input is outside its domain."""
    def __init__(self, message: str, field: str):
        super().__init__(message)
        self.field = field


class NoUsableEpochsError(RgpAdvisorError):
    """Raised when no epoch record survives extraction."""
