"""Workflow engine exceptions."""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for workflow engine errors."""


class WorkflowNotFoundError(WorkflowError):
    """Raised when a run is requested for an unknown workflow id."""

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow {workflow_id} not found")


class WebhookNotFoundError(WorkflowNotFoundError):
    """Raised when no workflow is registered for a webhook path."""

    def __init__(self, path: str) -> None:
        self.path = path
        WorkflowError.__init__(self, f"No workflow registered for webhook path {path!r}")
        self.workflow_id = ""


class WorkflowDisabledError(WorkflowError):
    """Raised when a run is requested for a disabled workflow."""

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow {workflow_id} is disabled")


class NestedWorkflowError(WorkflowError):
    """Base class for nested ``workflow`` action guard failures."""

    def __init__(self, message: str, chain: tuple[str, ...]) -> None:
        self.chain = chain
        super().__init__(message)


class WorkflowCycleError(NestedWorkflowError):
    """A nested workflow action re-enters a workflow already on the call chain."""

    def __init__(self, workflow_id: str, chain: tuple[str, ...]) -> None:
        path = " -> ".join((*chain, workflow_id))
        super().__init__(f"Workflow cycle detected: {path}", chain)


class NestedDepthExceededError(NestedWorkflowError):
    """Nested workflow actions went deeper than the configured limit."""

    def __init__(self, max_depth: int, chain: tuple[str, ...]) -> None:
        self.max_depth = max_depth
        super().__init__(f"Nested workflow depth limit {max_depth} exceeded", chain)


class UnknownActionTypeError(WorkflowError):
    def __init__(self, action_type: str) -> None:
        self.action_type = action_type
        super().__init__(f"Unknown action type: {action_type}")
