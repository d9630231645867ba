"""
Settings are the explicit configuration handed to the ``WorkflowEngine``: which
workflows exist and which optional behaviours (timestamps, spent time, marker cleanup)
the caller wants planned. Nothing in the library reads ambient or global state; to
change a setting, build a new instance with ``attr.evolve``.
"""

import logging
from typing import Any, Dict, Iterable, Mapping, Tuple

import attr
import cattr  # type: ignore

from stagewise._types import to_tuple
from stagewise.errors import WorkflowDefinitionError
from stagewise.models import WorkflowDefinition, _Serializable
from stagewise.timekeeping import DEFAULT_DURATION_FORMAT
from stagewise.validation import validate_definition

_logger = logging.getLogger(__name__)

_PROJECT_WORKFLOW = {
    "id": "project_workflow",
    "name": "Project Workflow",
    "description": "Standard project management workflow",
    "stages": [
        {"id": "planning", "name": "Planning", "type": "linear", "next": "in_progress"},
        {
            "id": "in_progress",
            "name": "In Progress",
            "type": "cycle",
            "subStages": [
                {"id": "development", "name": "Development", "next": "testing"},
                {"id": "testing", "name": "Testing", "next": "development"},
            ],
            "canProceedTo": ["review", "cancelled"],
        },
        {
            "id": "review",
            "name": "Review",
            "type": "cycle",
            "canProceedTo": ["in_progress", "completed"],
        },
        {"id": "completed", "name": "Completed", "type": "terminal"},
        {"id": "cancelled", "name": "Cancelled", "type": "terminal"},
    ],
    "metadata": {
        "version": "1.0",
        "created": "2024-03-20",
        "lastModified": "2024-03-20",
    },
}

DEFAULT_DEFINITIONS: Tuple[WorkflowDefinition, ...] = (
    WorkflowDefinition.from_dict(_PROJECT_WORKFLOW),
)


def _unique_workflow_ids(
    instance: Any, attribute: attr.Attribute, value: Iterable[WorkflowDefinition]
) -> None:
    seen = set()
    for definition in value:
        if definition.id in seen:
            raise WorkflowDefinitionError(f"Duplicate workflow id '{definition.id}'")
        seen.add(definition.id)


@attr.s(frozen=True)
class WorkflowSettings(_Serializable):
    """Configuration for planning workflow transitions.

    :ivar bool enable_workflow: Master switch. When off, nothing is planned.
    :ivar bool auto_add_timestamp: Start timing the task generated for the next stage.
    :ivar str timestamp_format: ``strftime`` format for start stamps written into tasks.
    :ivar bool remove_timestamp_on_transition: Drop the completed task's start stamp.
    :ivar bool calculate_spent_time: Report the time the completed task spent in its
        stage.
    :ivar str spent_time_format: Format for reported durations, see
        ``format_duration``.
    :ivar bool calculate_full_spent_time: When the workflow ends, report the time spent
        across the whole run.
    :ivar bool auto_remove_last_stage_marker: Strip the completed task's stage marker.
    :ivar bool auto_add_next_task: Generate a task for the next stage.
    :ivar Tuple[WorkflowDefinition,...] definitions: The available workflows.
    """

    enable_workflow = attr.ib(type=bool, default=True)
    auto_add_timestamp = attr.ib(type=bool, default=False)
    timestamp_format = attr.ib(type=str, default="%Y-%m-%d %H:%M:%S")
    remove_timestamp_on_transition = attr.ib(type=bool, default=False)
    calculate_spent_time = attr.ib(type=bool, default=False)
    spent_time_format = attr.ib(type=str, default=DEFAULT_DURATION_FORMAT)
    calculate_full_spent_time = attr.ib(type=bool, default=False)
    auto_remove_last_stage_marker = attr.ib(type=bool, default=False)
    auto_add_next_task = attr.ib(type=bool, default=True)
    definitions = attr.ib(
        type=Tuple[WorkflowDefinition, ...],
        default=DEFAULT_DEFINITIONS,
        converter=to_tuple,
        validator=_unique_workflow_ids,
    )


def _camel_case(name: str) -> str:
    """
    >>> _camel_case("auto_add_next_task")
    'autoAddNextTask'
    """
    first, *rest = name.split("_")
    return first + "".join(word.title() for word in rest)


def _structure_settings(obj: Mapping, cls: type) -> WorkflowSettings:
    # Stored settings may use either the field names or their camelCase spelling
    names: Dict[str, str] = {}
    for field in attr.fields(WorkflowSettings):
        names[field.name] = field.name
        names[_camel_case(field.name)] = field.name
    unknown = set(obj) - set(names)
    if unknown:
        _logger.warning(f"Ignoring unknown settings: {', '.join(sorted(unknown))}")
    kwargs = {names[k]: v for k, v in obj.items() if k in names}
    if "definitions" in kwargs:
        kwargs["definitions"] = [
            cattr.structure(d, WorkflowDefinition) for d in kwargs["definitions"]
        ]
    return cls(**kwargs)


def _unstructure_settings(obj: WorkflowSettings) -> dict:
    d = attr.asdict(obj, recurse=False)
    d["definitions"] = [cattr.unstructure(w) for w in obj.definitions]
    return d


cattr.register_structure_hook(WorkflowSettings, _structure_settings)
cattr.register_unstructure_hook(WorkflowSettings, _unstructure_settings)


def load_settings(d: Mapping) -> WorkflowSettings:
    """Build settings from a configuration mapping, logging suspicious definitions.

    :param d: The configuration, keyed by ``WorkflowSettings`` field names.
    :return: The settings.
    :raises WorkflowDefinitionError: If a definition is structurally invalid.
    """
    settings = WorkflowSettings.from_dict(dict(d))
    for definition in settings.definitions:
        for warning in validate_definition(definition):
            _logger.warning(warning)
    return settings
