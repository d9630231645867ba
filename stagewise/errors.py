"""
Errors come in two flavours. Problems with a task's annotation (a stage that was
renamed, a half-typed marker, a task outside of any workflow) happen all the time
during ordinary editing, so resolution reports them as ``ResolutionError`` values
rather than raising. Problems with the workflow definitions themselves are authoring
mistakes and raise ``WorkflowDefinitionError`` when the definitions are loaded.
"""

from enum import Enum

import attr


class WorkflowDefinitionError(ValueError):
    """Raised when a workflow definition breaks one of its structural invariants."""


class ResolutionErrorKind(Enum):
    """The reasons an annotation can fail to resolve."""

    NO_PARENT_WORKFLOW = "no_parent_workflow"
    UNKNOWN_WORKFLOW = "unknown_workflow"
    UNKNOWN_STAGE = "unknown_stage"
    UNKNOWN_SUB_STAGE = "unknown_sub_stage"


@attr.s(auto_attribs=True, frozen=True)
class ResolutionError:
    """A failure to resolve an annotation against the loaded definitions.

    Callers should treat the task as "not a workflow task right now" and move on.

    :ivar ResolutionErrorKind kind: Why resolution failed.
    :ivar str message: A description suitable for logging.
    """

    kind: ResolutionErrorKind
    message: str

    @classmethod
    def no_parent_workflow(cls) -> "ResolutionError":
        return cls(
            ResolutionErrorKind.NO_PARENT_WORKFLOW,
            "Unable to find an enclosing workflow to inherit",
        )

    @classmethod
    def unknown_workflow(cls, workflow_id: str) -> "ResolutionError":
        return cls(
            ResolutionErrorKind.UNKNOWN_WORKFLOW,
            f"Unable to find workflow '{workflow_id}'",
        )

    @classmethod
    def unknown_stage(cls, workflow_id: str, stage_id: str) -> "ResolutionError":
        return cls(
            ResolutionErrorKind.UNKNOWN_STAGE,
            f"Unable to find stage '{stage_id}' in '{workflow_id}'",
        )

    @classmethod
    def unknown_sub_stage(
        cls, workflow_id: str, stage_id: str, sub_stage_id: str
    ) -> "ResolutionError":
        return cls(
            ResolutionErrorKind.UNKNOWN_SUB_STAGE,
            f"Unable to find sub-stage '{sub_stage_id}' of '{stage_id}' "
            f"in '{workflow_id}'",
        )

    def __str__(self) -> str:
        return self.message
