"""
An annotation is what a task says about its own place in a workflow, after the caller
has pulled it out of the task's text. It names a workflow (or asks to inherit the one
of an enclosing task) and a stage (or marks the task as the workflow's root).
"""

from enum import Enum
from typing import Optional, Union

import attr

_SUB_STAGE_SEPARATOR = "."


class Marker(Enum):
    """Sentinels that stand in for a concrete workflow or stage reference."""

    INHERIT = "inherit"
    ROOT = "root"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}.{self.name}"


INHERIT = Marker.INHERIT
ROOT = Marker.ROOT


@attr.s(auto_attribs=True, frozen=True)
class StageRef:
    """A reference to a stage, and optionally to one of its sub-stages.

    :ivar str stage_id: The id of the referenced stage.
    :ivar Optional[str] sub_stage_id: The id of the referenced sub-stage, if any.
    """

    stage_id: str
    sub_stage_id: Optional[str] = None

    @classmethod
    def parse(cls, compound_id: str) -> "StageRef":
        """Split a ``stage.substage`` compound id into a reference.

        >>> StageRef.parse("development.coding")
        StageRef(stage_id='development', sub_stage_id='coding')
        >>> StageRef.parse("planning")
        StageRef(stage_id='planning', sub_stage_id=None)
        """
        stage_id, _, sub_stage_id = compound_id.partition(_SUB_STAGE_SEPARATOR)
        return cls(stage_id, sub_stage_id or None)

    def __str__(self) -> str:
        if self.sub_stage_id is None:
            return self.stage_id
        return f"{self.stage_id}{_SUB_STAGE_SEPARATOR}{self.sub_stage_id}"


WorkflowRef = Union[str, Marker]
StageRefOrRoot = Union[StageRef, Marker, None]


def _check_workflow_ref(
    instance: "TaskWorkflowAnnotation", attribute: attr.Attribute, value: WorkflowRef
) -> None:
    if value is ROOT:
        raise ValueError("A workflow reference cannot be the root marker")


def _to_stage_ref(value: Union[str, StageRefOrRoot]) -> StageRefOrRoot:
    if isinstance(value, str):
        return StageRef.parse(value)
    return value


def _check_stage_ref(
    instance: "TaskWorkflowAnnotation",
    attribute: attr.Attribute,
    value: StageRefOrRoot,
) -> None:
    if value is INHERIT:
        raise ValueError("A stage reference cannot be the inherit marker")
    if value is not None and not isinstance(value, (StageRef, Marker)):
        raise TypeError(f"Expected a stage reference, got {value!r}")


@attr.s(auto_attribs=True, frozen=True)
class TaskWorkflowAnnotation:
    """The workflow state a task declares.

    A ``stage_ref`` of ``None`` means the task only declares membership in the
    workflow, which is treated the same as ``ROOT``.

    :ivar WorkflowRef workflow_ref: A workflow id, or ``INHERIT`` to use the workflow
        of the nearest enclosing task.
    :ivar StageRefOrRoot stage_ref: The stage the task is at, or ``ROOT``. A plain
        ``stage.substage`` string is parsed into a ``StageRef``.
    """

    workflow_ref: WorkflowRef = attr.ib(validator=_check_workflow_ref)
    stage_ref: StageRefOrRoot = attr.ib(
        default=ROOT, converter=_to_stage_ref, validator=_check_stage_ref
    )

    @classmethod
    def root(cls, workflow_id: str) -> "TaskWorkflowAnnotation":
        """Annotation for the root task of a workflow."""
        return cls(workflow_id, ROOT)

    @classmethod
    def at_stage(
        cls,
        stage_id: str,
        sub_stage_id: Optional[str] = None,
        workflow_ref: WorkflowRef = INHERIT,
    ) -> "TaskWorkflowAnnotation":
        """Annotation for a task at a stage, inheriting its workflow by default."""
        return cls(workflow_ref, StageRef(stage_id, sub_stage_id))

    @property
    def inherits_workflow(self) -> bool:
        return self.workflow_ref is INHERIT

    @property
    def is_root(self) -> bool:
        return self.stage_ref is None or self.stage_ref is ROOT
