"""
Transitions decide where a task goes once it is completed. The decision depends only on
the resolved context, never on the task's text, and there is always an answer: when a
task has nowhere to go the result simply points back at where it already is.

The rules, checked in order:

- The root task of a workflow moves to the first stage.
- Terminal stages never advance.
- A cycle stage with a current sub-stage follows the sub-stage chain. At the end of the
  chain it leaves through the stage's first ``canProceedTo`` target, or loops back to
  the first sub-stage.
- Anything else follows the stage's explicit ``next``, then its first ``canProceedTo``
  target, then the stage that follows it in the workflow's ordering.

Explicit links always outrank position, so stages can be reordered for display
without changing where tasks go. A link that names a stage or sub-stage that doesn't
exist is treated as having nowhere to go.
"""

import logging
from typing import List, Optional

import attr

from stagewise._itertools import first_or_none
from stagewise.models import AnyStage, RootStage, Stage, SubStage, WorkflowDefinition
from stagewise.resolver import ResolvedContext

_logger = logging.getLogger(__name__)


@attr.s(auto_attribs=True, frozen=True)
class StageTransitionResult:
    """Where a completed task goes next.

    :ivar str next_stage_id: The id of the stage to move to.
    :ivar Optional[str] next_sub_stage_id: The id of the sub-stage to move to, if any.
    :ivar bool same_stage: Whether the result is the position the task is already at,
        i.e. there is nowhere to go.
    :ivar Optional[str] initial_sub_stage_id: When entering a cycle stage without a
        specific sub-stage, the first sub-stage that should be seeded as a child task.
    """

    next_stage_id: str
    next_sub_stage_id: Optional[str] = None
    same_stage: bool = False
    initial_sub_stage_id: Optional[str] = None

    @property
    def creates_task(self) -> bool:
        """Whether a new downstream task should be generated."""
        return not self.same_stage


def _stay(context: ResolvedContext) -> StageTransitionResult:
    sub_stage = context.sub_stage
    return StageTransitionResult(
        context.stage.id,
        sub_stage.id if sub_stage is not None else None,
        same_stage=True,
    )


def _move(
    context: ResolvedContext, stage: Stage, sub_stage: Optional[SubStage] = None
) -> StageTransitionResult:
    current_sub_stage = context.sub_stage
    same_stage = (
        not context.is_root_task
        and stage.id == context.stage.id
        and (sub_stage.id if sub_stage else None)
        == (current_sub_stage.id if current_sub_stage else None)
    )
    initial_sub_stage = None
    if sub_stage is None and stage.is_cycle:
        initial_sub_stage = stage.first_sub_stage
    return StageTransitionResult(
        stage.id,
        sub_stage.id if sub_stage is not None else None,
        same_stage=same_stage,
        initial_sub_stage_id=initial_sub_stage.id if initial_sub_stage else None,
    )


def _move_to_id(
    context: ResolvedContext, stage_id: Optional[str]
) -> StageTransitionResult:
    stage = context.workflow.stage(stage_id)
    if stage is None:
        _logger.debug(f"{context} links to missing stage '{stage_id}'")
        return _stay(context)
    return _move(context, stage)


def _next_in_cycle(
    context: ResolvedContext, stage: Stage, sub_stage: SubStage
) -> StageTransitionResult:
    if sub_stage.next is not None:
        next_sub_stage = stage.sub_stage(sub_stage.next)
        if next_sub_stage is None:
            _logger.debug(f"{context} links to missing sub-stage '{sub_stage.next}'")
            return _stay(context)
        return _move(context, stage, next_sub_stage)
    if stage.can_proceed_to:
        return _move_to_id(context, stage.can_proceed_to[0])
    first = stage.first_sub_stage
    if first is None:
        return _stay(context)
    return _move(context, stage, first)


def _next_linear(
    workflow: WorkflowDefinition, context: ResolvedContext, stage: Stage
) -> StageTransitionResult:
    explicit = first_or_none(stage.next) or first_or_none(stage.can_proceed_to)
    if explicit is not None:
        return _move_to_id(context, explicit)
    successor = workflow.successor(stage)
    if successor is None:
        return _stay(context)
    return _move(context, successor)


def transition(context: ResolvedContext) -> StageTransitionResult:
    """Compute the next stage and sub-stage for a completed task.

    :param context: The resolved position of the task.
    :return: The next position. When there is nowhere to go, ``same_stage`` is set
        and the result repeats the current position.
    """
    workflow = context.workflow
    stage = context.stage
    if isinstance(stage, RootStage):
        first = workflow.first_stage
        if first is None:
            return _stay(context)
        return _move(context, first)
    if stage.is_terminal:
        return _stay(context)
    if stage.is_cycle and context.sub_stage is not None:
        return _next_in_cycle(context, stage, context.sub_stage)
    return _next_linear(workflow, context, stage)


def available_transitions(context: ResolvedContext) -> List[Stage]:
    """List the stages a task may be moved to by hand from its current position.

    :param context: The resolved position of the task.
    :return: The stages that can be jumped to, in the order they should be offered.
    """
    workflow = context.workflow
    stage: AnyStage = context.stage
    if isinstance(stage, RootStage):
        first = workflow.first_stage
        return [first] if first is not None else []
    if stage.is_terminal:
        return []
    if stage.can_proceed_to:
        targets = (workflow.stage(stage_id) for stage_id in stage.can_proceed_to)
        return [target for target in targets if target is not None]
    return [s for s in workflow.stages if s.id != stage.id]
