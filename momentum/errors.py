"""Error taxonomy for the journey core.

Only ConfigurationError is allowed to halt a stage transition. Generation
failures are recovered with the local fallback template and concurrency
conflicts are retried by the progression engine.
"""

from __future__ import annotations


class MomentumError(Exception):
    """Base class for every error raised by this package."""


class InputValidationError(MomentumError):
    """A questionnaire submission was rejected before scoring."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class GenerationError(MomentumError):
    """The content-generation collaborator failed or returned garbage."""


class GenerationTimeout(GenerationError):
    """The content-generation collaborator did not answer in time."""


class ConcurrencyConflict(MomentumError):
    """A journey write was based on a stale read."""

    def __init__(self, user_id: str, expected_version: int, actual_version: int | None):
        super().__init__(
            f"Stale journey state for {user_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )
        self.user_id = user_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class ConfigurationError(MomentumError, ValueError):
    """Static configuration (stages, weights, requirement checkers) is invalid."""


class InvalidTransition(MomentumError):
    """A task status change would move backwards."""


class JourneyNotFound(MomentumError, KeyError):
    """No journey has been initialized for the user."""
