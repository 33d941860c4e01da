"""Automation runtime: wires config to the store, collaborators and engine."""

from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path
from typing import Any

from evofit_automation.config import ConfigManager
from evofit_automation.config.schema import AutomationConfig
from evofit_automation.workflows.actions import ActionCollaborators, DefaultCollaborators
from evofit_automation.workflows.engine import WorkflowEngine
from evofit_automation.workflows.models import WorkflowDefinition
from evofit_automation.workflows.schedule import get_strategy
from evofit_automation.workflows.serialization import workflow_from_dict
from evofit_automation.workflows.store import create_store

logger = logging.getLogger(__name__)


def load_workflow_file(path: Path | str) -> list[WorkflowDefinition]:
    """Read workflow definitions from a JSON or TOML file.

    The file holds a top-level ``workflows`` list (a bare JSON list is also
    accepted).

    Raises:
        ValueError: If the file is malformed or a definition is invalid.
        OSError: If the file cannot be read.
    """
    path = Path(path).expanduser()
    if path.suffix == ".toml":
        with open(path, "rb") as fh:
            raw: Any = tomllib.load(fh)
    else:
        with open(path, encoding="utf-8") as fh:
            raw = json.load(fh)

    items = raw if isinstance(raw, list) else raw.get("workflows", [])
    if not isinstance(items, list):
        raise ValueError(f"'workflows' in {path} must be a list")
    return [workflow_from_dict(item) for item in items]


class AutomationRuntime:
    """Boots and holds the live workflow engine.

    CLI and server both go through the runtime so they see the same
    configuration-driven wiring.
    """

    def __init__(
        self,
        config: AutomationConfig | None = None,
        collaborators: ActionCollaborators | None = None,
    ) -> None:
        self._config = config or ConfigManager().load()
        self._collaborators = collaborators
        self._started = False
        self.engine: WorkflowEngine | None = None

    @property
    def config(self) -> AutomationConfig:
        return self._config

    @property
    def started(self) -> bool:
        return self._started

    def build_engine(self) -> WorkflowEngine:
        """Construct the engine from config and register its workflows."""
        cfg = self._config
        db_path = None
        if cfg.engine.store == "sqlite":
            data_dir = cfg.get_data_path()
            data_dir.mkdir(parents=True, exist_ok=True)
            db_path = cfg.get_db_path()

        engine = WorkflowEngine(
            store=create_store(cfg.engine.store, db_path),
            collaborators=self._collaborators
            or DefaultCollaborators(
                api_base_url=cfg.actions.api_base_url,
                timeout_seconds=cfg.actions.http_timeout_seconds,
            ),
            schedule_strategy=get_strategy(cfg.scheduler.strategy, cfg.scheduler.default_timezone),
            max_nested_depth=cfg.engine.max_nested_depth,
            fail_on_retry_exhaustion=cfg.engine.fail_on_retry_exhaustion,
        )

        if cfg.engine.load_default_workflows:
            count = engine.register_default_workflows()
            logger.info("Registered %d default workflows", count)

        if cfg.engine.workflows_file:
            for workflow in load_workflow_file(cfg.engine.workflows_file):
                engine.add_workflow(workflow)
            logger.info("Loaded workflows from %s", cfg.engine.workflows_file)

        return engine

    async def start(self, arm_schedules: bool = True) -> WorkflowEngine:
        """Build the engine and (optionally) start its schedule timers."""
        if self._started and self.engine is not None:
            logger.warning("Runtime already started")
            return self.engine

        self.engine = self.build_engine()
        if arm_schedules:
            await self.engine.start()
        self._started = True
        logger.info("Automation runtime started")
        return self.engine

    async def stop(self) -> None:
        """Stop schedule timers and release the execution store."""
        if self.engine is not None:
            await self.engine.stop()
            self.engine.store.close()
        self.engine = None
        self._started = False
        logger.info("Automation runtime stopped")
