"""
Deployment trigger.

A deployment is cut once per distinct fingerprint of an API:

    pending  -- graph resolved, fingerprint computed, not yet recorded
    deployed -- recorded; terminal for that fingerprint

Firing an already-deployed fingerprint is a no-op. There is no failed
state: provisioning failures belong to whoever performs the deployment, and
nothing here retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from apigraph.store.sqlite_store import DeploymentRecord, DeploymentSQLiteStore, DeploymentState

if TYPE_CHECKING:
    from apigraph.orchestrator.pipeline import CompileResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeploymentPlan:
    api_name: str
    fingerprint: str
    stage_name: str
    state: DeploymentState
    depends_on: tuple[str, ...]
    existing: Optional[DeploymentRecord] = None

    @property
    def is_noop(self) -> bool:
        return self.state == "deployed"


@dataclass(frozen=True)
class TriggerOutcome:
    record: DeploymentRecord
    created: bool


class DeploymentTrigger:
    def __init__(self, store: DeploymentSQLiteStore):
        self.store = store

    def plan(self, result: "CompileResult") -> DeploymentPlan:
        # every response must be wired before the deployment is cut
        depends_on = result.graph.response_node_ids()
        existing = self.store.get_deployment(result.api_name, result.fingerprint)
        return DeploymentPlan(
            api_name=result.api_name,
            fingerprint=result.fingerprint,
            stage_name=result.stage_name,
            state="deployed" if existing else "pending",
            depends_on=depends_on,
            existing=existing,
        )

    def fire(self, result: "CompileResult") -> TriggerOutcome:
        plan = self.plan(result)
        if plan.existing is not None:
            logger.info(
                "api %s fingerprint %s already deployed, nothing to do",
                plan.api_name,
                plan.fingerprint[:12],
            )
            return TriggerOutcome(record=plan.existing, created=False)

        record, created = self.store.insert_deployment(
            api_name=plan.api_name,
            fingerprint=plan.fingerprint,
            stage_name=plan.stage_name,
            depends_on=plan.depends_on,
        )
        if created:
            logger.info(
                "api %s: new deployment %s for fingerprint %s",
                plan.api_name,
                record.deployment_id[:12],
                plan.fingerprint[:12],
            )
        return TriggerOutcome(record=record, created=created)
