"""
A workflow is a named sequence of stages that a task moves through as it is completed.
Stages come in three kinds:

- Linear stages hand the task on to a single next stage.
- Cycle stages can be repeated, and may contain their own chain of sub-stages.
- Terminal stages end the workflow.

Tasks declare where they are with a ``TaskWorkflowAnnotation``. That annotation is
resolved against the loaded ``WorkflowDefinition``s into a ``ResolvedContext``, from
which the next stage (``transition``) and whether the workflow has ended
(``is_final``) can be computed. Time spent in each stage is tracked with
``TimeRecord``s and can be summed across a run with ``aggregate``.

The ``WorkflowEngine`` combines these for the common case of "this task was just
completed", according to the caller's ``WorkflowSettings``. Nothing here reads or
writes task text: callers parse annotations out of their documents and apply the
returned plans themselves.
"""

from stagewise.__version__ import __version__
from stagewise.annotations import (
    INHERIT,
    ROOT,
    Marker,
    StageRef,
    TaskWorkflowAnnotation,
)
from stagewise.engine import CompletionEvent, CompletionPlan, WorkflowEngine
from stagewise.errors import (
    ResolutionError,
    ResolutionErrorKind,
    WorkflowDefinitionError,
)
from stagewise.models import (
    RootStage,
    Stage,
    StageKind,
    SubStage,
    WorkflowDefinition,
    WorkflowMetadata,
)
from stagewise.resolver import ResolvedContext, resolve_context
from stagewise.settings import DEFAULT_DEFINITIONS, WorkflowSettings, load_settings
from stagewise.terminality import is_final
from stagewise.timekeeping import (
    TimeRecord,
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
from stagewise.validation import validate_definition

__all__ = [
    "CompletionEvent",
    "CompletionPlan",
    "DEFAULT_DEFINITIONS",
    "INHERIT",
    "Marker",
    "ROOT",
    "ResolutionError",
    "ResolutionErrorKind",
    "ResolvedContext",
    "RootStage",
    "Stage",
    "StageKind",
    "StageRef",
    "StageTransitionResult",
    "SubStage",
    "TaskWorkflowAnnotation",
    "TimeRecord",
    "WorkflowDefinition",
    "WorkflowDefinitionError",
    "WorkflowEngine",
    "WorkflowMetadata",
    "WorkflowSettings",
    "__version__",
    "aggregate",
    "available_transitions",
    "close",
    "format_duration",
    "is_final",
    "load_settings",
    "resolve_context",
    "start",
    "transition",
    "validate_definition",
]
