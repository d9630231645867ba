"""
The engine ties resolution, transitions, terminality and time accounting together for
the moment a task is completed. It does not touch the task itself. Instead it returns
a ``CompletionPlan`` describing what the caller should do: which task to generate
next, which markers to strip, which timer to start and how much time was spent.

Annotations that cannot be resolved are logged and skipped, so one stale task never
stops a batch of others from being planned.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional, Sequence

import attr

from stagewise import terminality
from stagewise._types import optional_to_tuple
from stagewise.annotations import TaskWorkflowAnnotation
from stagewise.errors import ResolutionError
from stagewise.models import Stage, SubStage
from stagewise.resolver import AncestorLookup, ResolvedContext, resolve_context
from stagewise.settings import WorkflowSettings
from stagewise.timekeeping import (
    DEFAULT_DURATION_FORMAT,
    TimeRecord,
    _now,
    aggregate,
    close,
    format_duration,
    start,
)
from stagewise.transitions import (
    StageTransitionResult,
    available_transitions,
    transition,
)


@attr.s(auto_attribs=True, frozen=True)
class CompletionEvent:
    """A task that was just completed, as handed to ``WorkflowEngine.complete_many``.

    :ivar TaskWorkflowAnnotation annotation: The workflow state the task declared.
    :ivar Any task_ref: The caller's handle for the task, for ancestor lookups.
    :ivar Optional[TimeRecord] record: The open time record of the task, if timed.
    :ivar Sequence[TimeRecord] history: Records of earlier stages of the same run.
    """

    annotation: Optional[TaskWorkflowAnnotation]
    task_ref: Any = None
    record: Optional[TimeRecord] = None
    history: Sequence[TimeRecord] = ()


@attr.s(auto_attribs=True, frozen=True)
class CompletionPlan:
    """What should happen as a result of completing a workflow task.

    :ivar ResolvedContext context: Where the completed task was.
    :ivar StageTransitionResult transition: Where the workflow goes next.
    :ivar Optional[Stage] next_stage: The stage to move to, or ``None`` on a no-op.
    :ivar Optional[SubStage] next_sub_stage: The sub-stage to move to, if any.
    :ivar Optional[SubStage] child_sub_stage: The first sub-stage to seed as a child
        task when entering a cycle stage.
    :ivar bool is_final: Whether the completed task ended its workflow.
    :ivar bool create_next_task: Whether to generate a task for the next stage.
    :ivar bool remove_stage_marker: Whether to strip the completed task's stage marker.
    :ivar bool remove_timestamp: Whether to strip the completed task's start stamp.
    :ivar Optional[TimeRecord] next_record: A started record for the generated task.
    :ivar Optional[TimeRecord] closed_record: The completed task's closed record.
    :ivar Optional[timedelta] total_elapsed: Time spent across the whole run, once the
        workflow has ended.
    :ivar str spent_time_format: The format used by ``format_elapsed``.
    """

    context: ResolvedContext
    transition: StageTransitionResult
    next_stage: Optional[Stage]
    next_sub_stage: Optional[SubStage]
    child_sub_stage: Optional[SubStage]
    is_final: bool
    create_next_task: bool
    remove_stage_marker: bool
    remove_timestamp: bool
    next_record: Optional[TimeRecord] = None
    closed_record: Optional[TimeRecord] = None
    total_elapsed: Optional[timedelta] = None
    spent_time_format: str = DEFAULT_DURATION_FORMAT

    @property
    def stage_elapsed(self) -> Optional[timedelta]:
        return self.closed_record.elapsed if self.closed_record else None

    def format_elapsed(self, delta: timedelta) -> str:
        return format_duration(delta, self.spent_time_format)


class WorkflowEngine:
    """Plans what happens when workflow tasks are completed.

    :param settings: The workflow definitions and optional behaviours to plan with.
    """

    def __init__(self, settings: Optional[WorkflowSettings] = None) -> None:
        self.settings = settings or WorkflowSettings()
        self._logger = logging.getLogger(f"{self.__module__}.{self}")

    def resolve(
        self,
        annotation: TaskWorkflowAnnotation,
        task_ref: Any = None,
        ancestor_lookup: Optional[AncestorLookup] = None,
    ) -> Optional[ResolvedContext]:
        """Resolve an annotation, logging and discarding any failure.

        :return: The resolved context, or ``None`` if the annotation didn't resolve.
        """
        result = resolve_context(
            annotation, self.settings.definitions, ancestor_lookup, task_ref
        )
        if isinstance(result, ResolutionError):
            self._logger.warning(result.message)
            return None
        return result

    def complete(
        self,
        annotation: Optional[TaskWorkflowAnnotation],
        *,
        task_ref: Any = None,
        ancestor_lookup: Optional[AncestorLookup] = None,
        record: Optional[TimeRecord] = None,
        history: Iterable[TimeRecord] = (),
        now: Optional[datetime] = None,
    ) -> Optional[CompletionPlan]:
        """Plan the consequences of completing a task.

        :param annotation: The workflow state the task declared, or ``None`` if it
            declared none.
        :param task_ref: The caller's handle for the task, for ancestor lookups.
        :param ancestor_lookup: Finds the workflow of the task's nearest enclosing
            workflow task.
        :param record: The open time record of the completed task, if it was timed.
        :param history: Closed records of the earlier stages of the same run.
        :param now: When the task was completed. Defaults to the current UTC time.
        :return: The plan, or ``None`` if the task is not (currently) a workflow task
            or workflows are disabled.
        """
        if not self.settings.enable_workflow:
            self._logger.debug("Workflows are disabled, skipping")
            return None
        if annotation is None:
            return None
        context = self.resolve(annotation, task_ref, ancestor_lookup)
        if context is None:
            return None
        return self._plan(context, record, history, now or _now())

    def complete_many(
        self,
        events: Iterable[CompletionEvent],
        ancestor_lookup: Optional[AncestorLookup] = None,
        now: Optional[datetime] = None,
    ) -> List[Optional[CompletionPlan]]:
        """Plan a batch of completions, with ``None`` for each task that was skipped.

        :param events: The completed tasks.
        :param ancestor_lookup: Finds the workflow of a task's nearest enclosing
            workflow task.
        :param now: When the tasks were completed. Defaults to the current UTC time.
        :return: One plan (or ``None``) per event, in order.
        """
        now = now or _now()
        return [
            self.complete(
                event.annotation,
                task_ref=event.task_ref,
                ancestor_lookup=ancestor_lookup,
                record=event.record,
                history=event.history,
                now=now,
            )
            for event in events
        ]

    def is_final(
        self,
        annotation: Optional[TaskWorkflowAnnotation],
        task_ref: Any = None,
        ancestor_lookup: Optional[AncestorLookup] = None,
    ) -> bool:
        """Whether completing a task should let its parent complete too.

        Tasks without an annotation, and tasks whose annotation can't be resolved,
        are treated as plain tasks and so as final.
        """
        if annotation is None:
            return True
        context = self.resolve(annotation, task_ref, ancestor_lookup)
        return terminality.is_final(context)

    def jump_targets(
        self,
        annotation: TaskWorkflowAnnotation,
        task_ref: Any = None,
        ancestor_lookup: Optional[AncestorLookup] = None,
    ) -> List[Stage]:
        """The stages a task may be moved to by hand, empty if it doesn't resolve."""
        context = self.resolve(annotation, task_ref, ancestor_lookup)
        if context is None:
            return []
        return available_transitions(context)

    def _plan(
        self,
        context: ResolvedContext,
        record: Optional[TimeRecord],
        history: Iterable[TimeRecord],
        now: datetime,
    ) -> CompletionPlan:
        settings = self.settings
        result = transition(context)
        final = terminality.is_final(context)
        next_stage: Optional[Stage] = None
        next_sub_stage: Optional[SubStage] = None
        child_sub_stage: Optional[SubStage] = None
        if not result.same_stage:
            next_stage = context.workflow.stage(result.next_stage_id)
        if next_stage is not None:
            next_sub_stage = next_stage.sub_stage(result.next_sub_stage_id)
            child_sub_stage = next_stage.sub_stage(result.initial_sub_stage_id)
        create_next_task = settings.auto_add_next_task and next_stage is not None
        self._logger.debug(
            f"Completed {context}, next is "
            f"{'nothing' if result.same_stage else result.next_stage_id}"
        )

        next_record = None
        if create_next_task and settings.auto_add_timestamp:
            next_record = start(result.next_stage_id, result.next_sub_stage_id, now)
        closed = close(record, now) if record is not None else None
        total_elapsed = None
        if final and settings.calculate_full_spent_time:
            total_elapsed = aggregate([*history, *optional_to_tuple(closed)])

        return CompletionPlan(
            context=context,
            transition=result,
            next_stage=next_stage,
            next_sub_stage=next_sub_stage,
            child_sub_stage=child_sub_stage,
            is_final=final,
            create_next_task=create_next_task,
            remove_stage_marker=(
                settings.auto_remove_last_stage_marker and not context.is_root_task
            ),
            remove_timestamp=settings.remove_timestamp_on_transition,
            next_record=next_record,
            closed_record=closed if settings.calculate_spent_time else None,
            total_elapsed=total_elapsed,
            spent_time_format=settings.spent_time_format,
        )

    def __str__(self) -> str:
        return self.__class__.__name__
