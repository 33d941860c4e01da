"""Workflow engine: registry plus the trigger -> conditions -> actions pipeline."""

from __future__ import annotations

import asyncio
import logging
from contextvars import ContextVar
from typing import Any

from evofit_automation.workflows.actions import (
    ActionCollaborators,
    DefaultCollaborators,
    dispatch_action,
)
from evofit_automation.workflows.conditions import evaluate_conditions
from evofit_automation.workflows.errors import (
    NestedDepthExceededError,
    WebhookNotFoundError,
    WorkflowCycleError,
    WorkflowDisabledError,
    WorkflowNotFoundError,
)
from evofit_automation.workflows.events import EngineEvent, LifecycleEvents
from evofit_automation.workflows.models import (
    ExecutionStatus,
    ExecutionStep,
    StepStatus,
    WorkflowAction,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowStats,
    generate_execution_id,
    utc_now,
)
from evofit_automation.workflows.recorder import ExecutionRecorder
from evofit_automation.workflows.rules import FactRuleEvaluator
from evofit_automation.workflows.schedule import ScheduleStrategy
from evofit_automation.workflows.store import ExecutionStore, InMemoryExecutionStore
from evofit_automation.workflows.triggers import TriggerDispatcher

logger = logging.getLogger(__name__)

# Workflow ids of the runs enclosing the current one (nested ``workflow`` actions).
_call_chain: ContextVar[tuple[str, ...]] = ContextVar("workflow_call_chain", default=())


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class WorkflowEngine:
    """Runs workflow definitions against external collaborators.

    Lifecycle: construct, optionally :meth:`register_default_workflows`,
    ``await start()`` to arm schedule timers, ``await stop()`` to disarm
    them. Manual, event, webhook and fact-match runs work without
    :meth:`start`.
    """

    def __init__(
        self,
        store: ExecutionStore | None = None,
        collaborators: ActionCollaborators | None = None,
        schedule_strategy: ScheduleStrategy | None = None,
        rule_evaluator: FactRuleEvaluator | None = None,
        max_nested_depth: int = 8,
        fail_on_retry_exhaustion: bool = False,
    ) -> None:
        self._workflows: dict[str, WorkflowDefinition] = {}
        self._collaborators = collaborators or DefaultCollaborators()
        self._recorder = ExecutionRecorder(store or InMemoryExecutionStore())
        self._dispatcher = TriggerDispatcher(
            self.run_workflow,
            schedule_strategy=schedule_strategy,
            rule_evaluator=rule_evaluator,
        )
        self._max_nested_depth = max_nested_depth
        self._fail_on_retry_exhaustion = fail_on_retry_exhaustion
        self.events = LifecycleEvents()

    @property
    def dispatcher(self) -> TriggerDispatcher:
        return self._dispatcher

    @property
    def store(self) -> ExecutionStore:
        return self._recorder.store

    @property
    def running(self) -> bool:
        return self._dispatcher.running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def register_default_workflows(self) -> int:
        """Add the built-in workflows. Returns how many were added."""
        from evofit_automation.workflows.defaults import default_workflows

        workflows = default_workflows()
        for workflow in workflows:
            self.add_workflow(workflow)
        return len(workflows)

    async def start(self) -> None:
        await self._dispatcher.start()
        logger.info("Workflow engine started with %d workflows", len(self._workflows))

    async def stop(self) -> None:
        await self._dispatcher.stop()
        logger.info("Workflow engine stopped")

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def add_workflow(self, workflow: WorkflowDefinition) -> None:
        """Add or replace a workflow and (re)install its trigger."""
        self._dispatcher.register(workflow)
        self._workflows[workflow.id] = workflow
        logger.info("Workflow added: %s (%s trigger)", workflow.id, workflow.trigger.type)
        self.events.emit_nowait(EngineEvent.WORKFLOW_ADDED, workflow)

    def remove_workflow(self, workflow_id: str) -> bool:
        """Remove a workflow and its trigger. Returns True if found."""
        workflow = self._workflows.pop(workflow_id, None)
        if workflow is None:
            return False
        self._dispatcher.unregister(workflow_id)
        logger.info("Workflow removed: %s", workflow_id)
        self.events.emit_nowait(EngineEvent.WORKFLOW_REMOVED, workflow)
        return True

    def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None:
        return self._workflows.get(workflow_id)

    def list_workflows(self) -> list[WorkflowDefinition]:
        """Return all workflows in registration order."""
        return list(self._workflows.values())

    def enable_workflow(self, workflow_id: str) -> bool:
        return self._set_enabled(workflow_id, True)

    def disable_workflow(self, workflow_id: str) -> bool:
        return self._set_enabled(workflow_id, False)

    def _set_enabled(self, workflow_id: str, enabled: bool) -> bool:
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            return False
        workflow.enabled = enabled
        workflow.metadata.updated_at = utc_now()
        return True

    def _require_runnable(self, workflow_id: str) -> WorkflowDefinition:
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        if not workflow.enabled:
            raise WorkflowDisabledError(workflow_id)
        return workflow

    # ------------------------------------------------------------------
    # Trigger entry points
    # ------------------------------------------------------------------

    async def run_workflow(
        self,
        workflow_id: str,
        input: Any = None,
        execution_id: str | None = None,
    ) -> WorkflowExecution:
        """Run a workflow now and return its finished execution.

        Raises:
            WorkflowNotFoundError: Unknown workflow id.
            WorkflowDisabledError: The workflow is disabled.
            WorkflowCycleError: Called from a nested action that would
                re-enter a workflow already running on this call chain.
            NestedDepthExceededError: Nesting went past ``max_nested_depth``.
        """
        workflow = self._require_runnable(workflow_id)

        chain = _call_chain.get()
        if workflow_id in chain:
            raise WorkflowCycleError(workflow_id, chain)
        if len(chain) > self._max_nested_depth:
            raise NestedDepthExceededError(self._max_nested_depth, chain)

        token = _call_chain.set((*chain, workflow_id))
        try:
            return await self._run(workflow, {} if input is None else input, execution_id)
        finally:
            _call_chain.reset(token)

    async def publish(self, event_name: str, payload: Any = None) -> list[WorkflowExecution]:
        """Run every enabled workflow listening for ``event_name``.

        Matching workflows run concurrently; result order is not meaningful.
        """
        workflow_ids = [
            wid
            for wid in self._dispatcher.workflows_for_event(event_name)
            if (wf := self._workflows.get(wid)) is not None and wf.enabled
        ]
        logger.debug("Event %s matched %d workflows", event_name, len(workflow_ids))
        return await self._run_many(workflow_ids, {} if payload is None else payload)

    async def invoke_webhook(self, path: str, body: Any = None) -> WorkflowExecution:
        """Run the workflow registered for a webhook path.

        Raises:
            WebhookNotFoundError: No workflow owns ``path``.
            WorkflowDisabledError: The owning workflow is disabled.
        """
        workflow_id = self._dispatcher.workflow_for_webhook(path)
        if workflow_id is None:
            raise WebhookNotFoundError(path)
        return await self.run_workflow(workflow_id, body)

    async def on_fact_match(self, workflow_id: str, facts: Any) -> WorkflowExecution:
        """Run a condition-triggered workflow with the facts that matched."""
        return await self.run_workflow(workflow_id, facts)

    async def evaluate_facts(self, facts: Any) -> list[WorkflowExecution]:
        """Match ``facts`` against every condition trigger and run the hits."""
        workflow_ids = [
            wid
            for wid in self._dispatcher.match_facts(facts)
            if (wf := self._workflows.get(wid)) is not None and wf.enabled
        ]
        return await self._run_many(workflow_ids, facts)

    async def _run_many(self, workflow_ids: list[str], data: Any) -> list[WorkflowExecution]:
        results = await asyncio.gather(
            *(self.run_workflow(wid, data) for wid in workflow_ids),
            return_exceptions=True,
        )
        executions: list[WorkflowExecution] = []
        for wid, result in zip(workflow_ids, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("Workflow %s rejected run: %s", wid, result)
                continue
            executions.append(result)
        return executions

    # ------------------------------------------------------------------
    # Run pipeline
    # ------------------------------------------------------------------

    async def _run(
        self,
        workflow: WorkflowDefinition,
        data: Any,
        execution_id: str | None,
    ) -> WorkflowExecution:
        execution = WorkflowExecution(
            id=execution_id or generate_execution_id(),
            workflow_id=workflow.id,
            input=data,
        )
        execution.status = ExecutionStatus.RUNNING
        self._recorder.record(execution)
        logger.info("Execution %s started for workflow %s", execution.id, workflow.id)
        await self.events.emit(EngineEvent.EXECUTION_STARTED, execution)

        try:
            if workflow.conditions and not evaluate_conditions(workflow.conditions, data):
                self._recorder.finish(execution, ExecutionStatus.SKIPPED)
                logger.info("Execution %s skipped: conditions not met", execution.id)
                await self.events.emit(EngineEvent.EXECUTION_SKIPPED, execution)
                return execution

            for action in workflow.actions:
                step = await self._process_action(action, execution, data)
                if step.status == StepStatus.FAILED and self._is_fatal(action):
                    execution.status = ExecutionStatus.FAILED
                    execution.error = step.error
                    break

            if execution.status == ExecutionStatus.RUNNING:
                execution.output = {
                    s.action_id: s.output
                    for s in execution.steps
                    if s.status == StepStatus.COMPLETED
                }
                self._recorder.finish(execution, ExecutionStatus.COMPLETED)
            else:
                self._recorder.finish(execution, ExecutionStatus.FAILED)
        except asyncio.CancelledError:
            execution.error = "Execution cancelled"
            self._recorder.finish(execution, ExecutionStatus.CANCELLED)
            logger.warning("Execution %s cancelled", execution.id)
            self.events.emit_nowait(EngineEvent.EXECUTION_CANCELLED, execution)
            raise
        except Exception as exc:
            logger.exception("Execution %s raised", execution.id)
            execution.error = _error_message(exc)
            self._recorder.finish(execution, ExecutionStatus.FAILED)

        await self._recorder.update_metadata(workflow, execution)

        if execution.status == ExecutionStatus.COMPLETED:
            logger.info("Execution %s completed (%d steps)", execution.id, len(execution.steps))
            await self.events.emit(EngineEvent.EXECUTION_COMPLETED, execution)
        else:
            logger.warning("Execution %s failed: %s", execution.id, execution.error)
            await self.events.emit(EngineEvent.EXECUTION_FAILED, execution)
        return execution

    def _is_fatal(self, action: WorkflowAction) -> bool:
        return action.retry_policy is None or self._fail_on_retry_exhaustion

    async def _process_action(
        self,
        action: WorkflowAction,
        execution: WorkflowExecution,
        data: Any,
    ) -> ExecutionStep:
        """Run an action (with retries), then its success or failure branch.

        Branch actions become their own steps; their outcome never fails the
        run.
        """
        step = await self._execute_step(action, execution, data)

        branch = action.on_success if step.status == StepStatus.COMPLETED else action.on_failure
        for branch_action in branch:
            await self._process_action(branch_action, execution, data)
        return step

    async def _execute_step(
        self,
        action: WorkflowAction,
        execution: WorkflowExecution,
        data: Any,
    ) -> ExecutionStep:
        step = ExecutionStep(action_id=action.id, status=StepStatus.RUNNING)
        execution.steps.append(step)

        try:
            step.output = await self._attempt(action, execution, data, step)
            step.status = StepStatus.COMPLETED
        except Exception as exc:
            step.status = StepStatus.FAILED
            step.error = _error_message(exc)
            logger.warning("Action %s failed: %s", action.id, step.error)
            await self._retry(action, execution, data, step)

        step.end_time = utc_now()
        return step

    async def _retry(
        self,
        action: WorkflowAction,
        execution: WorkflowExecution,
        data: Any,
        step: ExecutionStep,
    ) -> None:
        policy = action.retry_policy
        if policy is None or policy.max_attempts <= 0:
            return

        for attempt in range(1, policy.max_attempts + 1):
            await asyncio.sleep(policy.backoff_ms * attempt / 1000)
            await self.events.emit(
                EngineEvent.ACTION_RETRY,
                {"execution_id": execution.id, "action_id": action.id, "attempt": attempt},
            )
            try:
                step.output = await self._attempt(action, execution, data, step)
            except Exception as exc:
                step.error = _error_message(exc)
                logger.warning(
                    "Action %s retry %d/%d failed: %s",
                    action.id,
                    attempt,
                    policy.max_attempts,
                    step.error,
                )
                continue
            step.status = StepStatus.COMPLETED
            step.error = None
            return

    async def _attempt(
        self,
        action: WorkflowAction,
        execution: WorkflowExecution,
        data: Any,
        step: ExecutionStep,
    ) -> Any:
        step.attempts += 1
        await self.events.emit(
            EngineEvent.ACTION_INVOKED,
            {
                "execution_id": execution.id,
                "action_id": action.id,
                "type": action.type,
                "config": action.config,
                "input": data,
            },
        )
        return await dispatch_action(action, data, self._collaborators, self.run_workflow)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        return self._recorder.store.get(execution_id)

    def get_execution_history(
        self, workflow_id: str | None = None, limit: int | None = None
    ) -> list[WorkflowExecution]:
        """Return executions in start order, optionally for one workflow."""
        return self._recorder.store.list_executions(workflow_id, limit)

    def get_workflow_stats(self, workflow_id: str) -> WorkflowStats:
        """Aggregate statistics for a workflow.

        Raises:
            WorkflowNotFoundError: Unknown workflow id.
        """
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return self._recorder.stats(workflow)
