"""Trigger dispatcher: maps declared triggers to workflow runs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from evofit_automation.workflows.errors import WorkflowError
from evofit_automation.workflows.models import (
    CronSchedule,
    TriggerType,
    WorkflowDefinition,
)
from evofit_automation.workflows.rules import FactRuleEvaluator
from evofit_automation.workflows.schedule import ScheduleStrategy, SubstringCronInterval

logger = logging.getLogger(__name__)

Runner = Callable[[str, Any], Awaitable[Any]]

SCHEDULED_INPUT: dict[str, str] = {"trigger": "scheduled"}


def normalize_webhook_path(path: str) -> str:
    return path.strip().strip("/")


class TriggerDispatcher:
    """Keeps the lookup tables for every trigger kind.

    Event and webhook triggers are plain lookups; schedule triggers own one
    asyncio task per workflow while the dispatcher is running; condition
    triggers are registered with the fact-rule evaluator.
    """

    def __init__(
        self,
        runner: Runner,
        schedule_strategy: ScheduleStrategy | None = None,
        rule_evaluator: FactRuleEvaluator | None = None,
    ) -> None:
        self._runner = runner
        self._strategy = schedule_strategy or SubstringCronInterval()
        self._rules = rule_evaluator or FactRuleEvaluator()
        self._events: dict[str, list[str]] = {}
        self._webhooks: dict[str, str] = {}
        self._schedules: dict[str, CronSchedule] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def rule_evaluator(self) -> FactRuleEvaluator:
        return self._rules

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, workflow: WorkflowDefinition) -> None:
        """Install ``workflow``'s trigger, replacing any previous registration.

        Raises:
            ValueError: If a webhook path is already owned by another
                workflow or a condition expression is malformed.
        """
        trigger = workflow.trigger
        if trigger.type == TriggerType.WEBHOOK and trigger.webhook:
            path = normalize_webhook_path(trigger.webhook)
            owner = self._webhooks.get(path)
            if owner is not None and owner != workflow.id:
                raise ValueError(f"Webhook path {path!r} already registered by {owner}")
        if trigger.type == TriggerType.CONDITION and trigger.condition:
            self._rules.add_rule(workflow.id, trigger.condition)

        has_rule = trigger.type == TriggerType.CONDITION and bool(trigger.condition)
        self._unregister_lookups(workflow.id, keep_rule=has_rule)

        if trigger.type == TriggerType.EVENT and trigger.event:
            self._events.setdefault(trigger.event, []).append(workflow.id)
        elif trigger.type == TriggerType.WEBHOOK and trigger.webhook:
            self._webhooks[normalize_webhook_path(trigger.webhook)] = workflow.id
        elif trigger.type == TriggerType.SCHEDULE and trigger.schedule:
            self._schedules[workflow.id] = trigger.schedule
            self._install_timer(workflow.id)

    def unregister(self, workflow_id: str) -> None:
        """Remove every trigger registration for ``workflow_id``."""
        self._unregister_lookups(workflow_id, keep_rule=False)

    def _unregister_lookups(self, workflow_id: str, keep_rule: bool) -> None:
        for name in list(self._events):
            ids = [wid for wid in self._events[name] if wid != workflow_id]
            if ids:
                self._events[name] = ids
            else:
                del self._events[name]
        for path, owner in list(self._webhooks.items()):
            if owner == workflow_id:
                del self._webhooks[path]
        self._schedules.pop(workflow_id, None)
        self._cancel_timer(workflow_id)
        if not keep_rule:
            self._rules.remove_rule(workflow_id)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def workflows_for_event(self, event_name: str) -> list[str]:
        return list(self._events.get(event_name, []))

    def workflow_for_webhook(self, path: str) -> str | None:
        return self._webhooks.get(normalize_webhook_path(path))

    def webhook_paths(self) -> dict[str, str]:
        return dict(self._webhooks)

    def match_facts(self, facts: Any) -> list[str]:
        return self._rules.match(facts)

    def scheduled_workflows(self) -> list[str]:
        return list(self._schedules)

    def has_timer(self, workflow_id: str) -> bool:
        task = self._tasks.get(workflow_id)
        return task is not None and not task.done()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start timers for every registered schedule."""
        if self._running:
            return
        self._running = True
        for workflow_id in list(self._schedules):
            self._install_timer(workflow_id)
        logger.info("Trigger dispatcher started (%d schedules)", len(self._schedules))

    async def stop(self) -> None:
        """Cancel every schedule timer and wait for them to finish."""
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                logger.debug("Schedule timer cancelled")
        logger.info("Trigger dispatcher stopped")

    def _install_timer(self, workflow_id: str) -> None:
        self._cancel_timer(workflow_id)
        if not self._running:
            return
        self._tasks[workflow_id] = asyncio.create_task(
            self._schedule_loop(workflow_id), name=f"schedule:{workflow_id}"
        )

    def _cancel_timer(self, workflow_id: str) -> None:
        task = self._tasks.pop(workflow_id, None)
        if task is not None:
            task.cancel()

    async def _schedule_loop(self, workflow_id: str) -> None:
        while self._running:
            schedule = self._schedules.get(workflow_id)
            if schedule is None:
                return
            try:
                delay = self._strategy.interval_seconds(schedule.expression, schedule.timezone)
            except ValueError:
                logger.exception("Invalid schedule for workflow %s; timer stopped", workflow_id)
                return

            await asyncio.sleep(delay)
            try:
                await self._runner(workflow_id, dict(SCHEDULED_INPUT))
            except WorkflowError as exc:
                logger.info("Scheduled run of %s rejected: %s", workflow_id, exc)
            except Exception:
                logger.exception("Scheduled run of %s raised", workflow_id)
