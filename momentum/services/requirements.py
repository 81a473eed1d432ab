"""Special requirement checks.

Stages can require things the core does not model itself (a written why
story, a custom schedule, ...). The surrounding application registers one
boolean checker per ``SpecialRequirement``; the progression engine refuses
to start if a configured stage requirement has no checker.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Mapping, Optional, Protocol, Union

from momentum.config.stages import SpecialRequirement, StageDefinition
from momentum.errors import ConfigurationError

logger = logging.getLogger(__name__)

Checker = Callable[[str], bool]    # user_id -> satisfied


class SpecialRequirementChecker(Protocol):
    def is_satisfied(self, name: SpecialRequirement, user_id: str) -> bool:
        ...


class RequirementRegistry:
    """Maps each SpecialRequirement to a ``user_id -> bool`` callable."""

    def __init__(self, checkers: Optional[Mapping[Union[str, SpecialRequirement], Checker]] = None):
        self._checkers: dict[SpecialRequirement, Checker] = {}
        for name, checker in (checkers or {}).items():
            self.register(name, checker)

    @staticmethod
    def _key(name: Union[str, SpecialRequirement]) -> SpecialRequirement:
        try:
            return SpecialRequirement(name)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown special requirement {name!r}") from exc

    def register(self, name: Union[str, SpecialRequirement], checker: Checker) -> None:
        key = self._key(name)
        if not callable(checker):
            raise ConfigurationError(f"Checker for {key.value} is not callable")
        self._checkers[key] = checker

    def register_checker(self, checker: SpecialRequirementChecker,
                         names: Optional[Iterable[Union[str, SpecialRequirement]]] = None) -> None:
        """Route ``names`` (default: every requirement) to one object's ``is_satisfied``."""
        if not callable(getattr(checker, "is_satisfied", None)):
            raise ConfigurationError(f"{type(checker).__name__} has no is_satisfied()")
        for name in (names if names is not None else SpecialRequirement):
            key = self._key(name)
            self.register(key, lambda user_id, key=key: checker.is_satisfied(key, user_id))

    def __contains__(self, name: object) -> bool:
        return name in self._checkers

    def missing_for(self, stages: Iterable[StageDefinition]) -> list[str]:
        """Configured requirements with no registered checker."""
        missing = {
            req.value
            for stage in stages
            for req in stage.special_requirements
            if req not in self._checkers
        }
        return sorted(missing)

    def is_satisfied(self, name: SpecialRequirement, user_id: str) -> bool:
        checker = self._checkers.get(SpecialRequirement(name))
        if checker is None:
            raise ConfigurationError(f"No checker registered for {SpecialRequirement(name).value}")
        return bool(checker(user_id))

    def unmet(self, stage: StageDefinition, user_id: str) -> list[str]:
        """Requirement names of ``stage`` that are not satisfied yet, in a stable order."""
        return [
            req.value
            for req in sorted(stage.special_requirements, key=lambda r: r.value)
            if not self.is_satisfied(req, user_id)
        ]


def scoring_on_record(store) -> Checker:
    """``vision_questionnaire`` is met once a scoring result has been stored."""

    def _check(user_id: str) -> bool:
        return store.latest_score(user_id) is not None

    return _check


def always(value: bool = True) -> Checker:
    return lambda user_id: value
