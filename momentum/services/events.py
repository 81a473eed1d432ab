"""Event handlers: typed payloads in, TransitionReport out.

The surrounding application validates raw input into the pydantic models
from ``momentum.models.messages`` and hands them to ``EventDispatcher``,
which routes each model type to the matching progression operation.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from pydantic import BaseModel

from momentum.engine.progression import StageProgressionEngine, TransitionResult
from momentum.models.adaptation import AdaptationOutcome
from momentum.models.messages import (
    EngagementSignals,
    ReflectionEvent,
    TaskStatusEvent,
    TransitionReport,
)

logger = logging.getLogger(__name__)


def to_report(user_id: str, result: TransitionResult) -> TransitionReport:
    return TransitionReport(user_id=user_id, **result.to_dict())


class EventDispatcher:
    """Routes event models to the progression engine by type."""

    def __init__(self, engine: StageProgressionEngine):
        self.engine = engine
        self._handlers: dict[type, Callable[[BaseModel], TransitionReport]] = {}
        self.on_message(TaskStatusEvent)(self.handle_task_status)
        self.on_message(ReflectionEvent)(self.handle_reflection)

    def on_message(self, model: type[BaseModel]):
        """Register a handler for ``model``; usable as a decorator."""
        def _register(handler):
            self._handlers[model] = handler
            return handler
        return _register

    def dispatch(self, event: BaseModel) -> TransitionReport:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"No handler registered for {type(event).__name__}")
        return handler(event)

    # ── Handlers ─────────────────────────────────────────────────────────

    def handle_task_status(self, event: TaskStatusEvent) -> TransitionReport:
        logger.info("Task %s of %s -> %s", event.task_id, event.user_id, event.status)
        result = self.engine.record_task_status(event.user_id, event.task_id, event.status, event.reflection)
        return to_report(event.user_id, result)

    def handle_reflection(self, event: ReflectionEvent) -> TransitionReport:
        logger.info("Reflection from %s (belief %s)", event.user_id, event.belief_score)
        result = self.engine.record_reflection(event.user_id, event.belief_score)
        return to_report(event.user_id, result)

    def handle_engagement(self, user_id: str, signals: Optional[EngagementSignals] = None) -> list[AdaptationOutcome]:
        payload = signals.model_dump(exclude_none=True) if signals is not None else None
        return self.engine.adapt(user_id, payload)
