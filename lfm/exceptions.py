"""Custom exceptions for the LFM engine."""


class LFMError(Exception):
    """Base exception for the LFM engine."""

    pass


class DimensionMismatch(LFMError, ValueError):
    """Raised when two vectors of different length are compared."""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Vector dimensions differ: {left} != {right}")


class NoModelsAvailable(LFMError):
    """Raised when every ensemble member failed to produce a prediction."""

    pass


class UnknownVotingStrategy(LFMError, ValueError):
    """Raised when an ensemble voting strategy name is not recognised."""

    def __init__(self, strategy: str):
        self.strategy = strategy
        super().__init__(f"Unknown voting strategy: {strategy}")


class InvalidFeedbackShape(LFMError, ValueError):
    """Raised when a feedback payload is malformed."""

    pass


class CalibrationDataError(LFMError, ValueError):
    """Raised when calibration input cannot be fitted."""

    pass


class ModelNotRegistered(LFMError, KeyError):
    """Raised when an operation targets an unknown ensemble model."""

    pass
