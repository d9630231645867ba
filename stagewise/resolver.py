"""
Resolution turns an annotation into the concrete workflow, stage and sub-stage it
refers to. Everything downstream (transitions, terminality, the engine) works only on
the resolved context, so an annotation has to survive resolution before any decision
is made about it.
"""

from typing import Any, Callable, Iterable, Optional, Union

import attr

from stagewise._itertools import find_by_id
from stagewise.annotations import StageRef, TaskWorkflowAnnotation
from stagewise.errors import ResolutionError
from stagewise.models import AnyStage, RootStage, Stage, SubStage, WorkflowDefinition

AncestorLookup = Callable[[Any], Optional[str]]


@attr.s(auto_attribs=True, frozen=True)
class ResolvedContext:
    """A task's validated position in a workflow.

    :ivar WorkflowDefinition workflow: The workflow the task belongs to.
    :ivar AnyStage stage: The stage the task is at, or the synthetic root stage.
    :ivar Optional[SubStage] sub_stage: The sub-stage the task is at, if any.
    """

    workflow: WorkflowDefinition
    stage: AnyStage
    sub_stage: Optional[SubStage] = None

    @property
    def is_root_task(self) -> bool:
        return isinstance(self.stage, RootStage)

    def __str__(self) -> str:
        position = self.stage.id
        if self.sub_stage is not None:
            position = f"{position}.{self.sub_stage.id}"
        return f"{self.workflow.id}:{position}"


def resolve_context(
    annotation: TaskWorkflowAnnotation,
    definitions: Iterable[WorkflowDefinition],
    ancestor_lookup: Optional[AncestorLookup] = None,
    task_ref: Any = None,
) -> Union[ResolvedContext, ResolutionError]:
    """Resolve an annotation against the loaded workflow definitions.

    Failures are returned, not raised: a stale or half-typed annotation is routine and
    callers are expected to skip the task.

    :param annotation: The workflow state declared by the task.
    :param definitions: The loaded workflow definitions.
    :param ancestor_lookup: Returns the id of the nearest enclosing workflow of a task,
        if any. Only called when the annotation inherits its workflow.
    :param task_ref: The caller's handle for the task, passed to ``ancestor_lookup``.
    :return: The resolved context, or a ``ResolutionError`` describing why the
        annotation could not be resolved.
    """
    if annotation.inherits_workflow:
        workflow_id = ancestor_lookup(task_ref) if ancestor_lookup else None
        if workflow_id is None:
            return ResolutionError.no_parent_workflow()
    else:
        workflow_id = annotation.workflow_ref  # type: ignore

    workflow = find_by_id(definitions, workflow_id)
    if workflow is None:
        return ResolutionError.unknown_workflow(workflow_id)

    if annotation.is_root:
        return ResolvedContext(workflow, workflow.root_stage())

    ref: StageRef = annotation.stage_ref  # type: ignore
    stage = workflow.stage(ref.stage_id)
    if stage is None:
        return ResolutionError.unknown_stage(workflow.id, ref.stage_id)
    if ref.sub_stage_id is None:
        return ResolvedContext(workflow, stage)

    sub_stage = _find_sub_stage(stage, ref.sub_stage_id)
    if sub_stage is None:
        return ResolutionError.unknown_sub_stage(
            workflow.id, stage.id, ref.sub_stage_id
        )
    return ResolvedContext(workflow, stage, sub_stage)


def _find_sub_stage(stage: Stage, sub_stage_id: str) -> Optional[SubStage]:
    # Sub-stages only mean something on cycle stages
    if not stage.is_cycle:
        return None
    return stage.sub_stage(sub_stage_id)
