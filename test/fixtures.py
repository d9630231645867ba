from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Union

from stagewise.models import Stage, StageKind, SubStage, WorkflowDefinition
from stagewise.resolver import ResolvedContext
from stagewise.timekeeping import TimeRecord

T0 = datetime(2024, 1, 1, 9, 0, 0, tzinfo=timezone.utc)


def sub_stage(
    id: str = "sub-stage", name: Optional[str] = None, next: Optional[str] = None
) -> SubStage:
    return SubStage(id=id, name=name or id.title(), next=next)


def stage(
    id: str = "stage",
    name: Optional[str] = None,
    kind: StageKind = StageKind.LINEAR,
    next: Union[None, str, Sequence[str]] = None,
    can_proceed_to: Optional[Sequence[str]] = None,
    sub_stages: Optional[List[SubStage]] = None,
) -> Stage:
    return Stage(
        id=id,
        name=name or id.title(),
        kind=kind,
        next=next,
        can_proceed_to=can_proceed_to,
        sub_stages=sub_stages or [],
    )


def workflow(
    id: str = "workflow",
    name: str = "Workflow",
    stages: Optional[List[Stage]] = None,
    description: str = "",
) -> WorkflowDefinition:
    return WorkflowDefinition(
        id=id, name=name, stages=stages or [], description=description
    )


def development_workflow() -> WorkflowDefinition:
    """planning -> development {coding -> testing -> review -> coding} -> deployment
    -> monitoring"""
    return workflow(
        id="development",
        name="Development Workflow",
        stages=[
            stage("planning", next="development"),
            stage(
                "development",
                kind=StageKind.CYCLE,
                sub_stages=[
                    sub_stage("coding", next="testing"),
                    sub_stage("testing", next="review"),
                    sub_stage("review", name="Code Review", next="coding"),
                ],
                can_proceed_to=["deployment"],
            ),
            stage("deployment", next="monitoring"),
            stage("monitoring", kind=StageKind.TERMINAL),
        ],
    )


def context(
    workflow: WorkflowDefinition,
    stage_id: Optional[str] = None,
    sub_stage_id: Optional[str] = None,
) -> ResolvedContext:
    """Build a resolved context directly, bypassing the resolver.

    Without a ``stage_id`` this is the root task of the workflow.
    """
    if stage_id is None:
        return ResolvedContext(workflow, workflow.root_stage())
    found = workflow.stage(stage_id)
    assert found is not None, stage_id
    return ResolvedContext(workflow, found, found.sub_stage(sub_stage_id))


def time_record(
    stage_id: str = "stage",
    sub_stage_id: Optional[str] = None,
    started_at: datetime = T0,
    elapsed: Optional[timedelta] = None,
) -> TimeRecord:
    return TimeRecord(stage_id, sub_stage_id, started_at, elapsed)
