"""
These models describe workflows as loaded from configuration: a workflow is an ordered
list of stages, and a cycle stage may carry its own chain of sub-stages. Instances are
frozen and hold no task state, so one set of definitions can be shared by every
task and every thread that evaluates them.

Definitions are read from and written to plain dictionaries using the spelling of the
stored configuration (``type``, ``canProceedTo``, ``subStages``, ``lastModified``).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Iterable, Optional, Tuple, Type, TypeVar, Union

import attr
import cattr  # type: ignore

from stagewise._itertools import find_by_id, first_or_none, index_by_id
from stagewise._types import ids_to_tuple, to_tuple
from stagewise.errors import WorkflowDefinitionError

_S = TypeVar("_S", bound="_Serializable")

ROOT_STAGE_ID = "_root_task_"


class _Serializable:
    """An interface for converting a class to/from a dictionary of primitives."""

    @classmethod
    def from_dict(cls: Type[_S], d: dict) -> _S:
        """Deserialize a dictionary into this class.

        :param d: The dictionary of instance values.
        :return: The deserialized class.
        """
        return cattr.structure(d, cls)  # type: ignore

    def to_dict(self) -> dict:
        """Convert this instance into a dictionary.

        :return: The dictionary of instance values.
        """
        return cattr.unstructure(self)  # type: ignore


class StageKind(Enum):
    """How a stage hands a task on once it is done."""

    LINEAR = "linear"
    CYCLE = "cycle"
    TERMINAL = "terminal"


def _to_stage_kind(value: Union[StageKind, str]) -> StageKind:
    if isinstance(value, StageKind):
        return value
    try:
        return StageKind(value)
    except ValueError:
        raise WorkflowDefinitionError(f"Unknown stage type '{value}'") from None


def _unique_ids(instance: Any, attribute: attr.Attribute, value: Iterable) -> None:
    seen = set()
    for item in value:
        if item.id in seen:
            raise WorkflowDefinitionError(
                f"Duplicate id '{item.id}' in {attribute.name} of {instance.id}"
            )
        seen.add(item.id)


@attr.s(frozen=True)
class SubStage(_Serializable):
    """A step within a cycle stage.

    :ivar str id: The identifier of the sub-stage, unique within its stage.
    :ivar str name: The display name of the sub-stage.
    :ivar Optional[str] next: The id of the sub-stage that follows this one, if any.
    """

    id = attr.ib(type=str, validator=attr.validators.instance_of(str))
    name = attr.ib(type=str)
    next = attr.ib(type=Optional[str], default=None)


@attr.s(frozen=True)
class Stage(_Serializable):
    """A named step of a workflow.

    :ivar str id: The identifier of the stage, unique within its workflow.
    :ivar str name: The display name of the stage.
    :ivar StageKind kind: Whether the stage is linear, a cycle or terminal.
    :ivar Tuple[str,...] next: Explicit successor ids, in priority order.
    :ivar Tuple[str,...] can_proceed_to: Explicit fan-out ids, in priority order.
    :ivar Tuple[SubStage,...] sub_stages: The sub-stage chain of a cycle stage.
    """

    id = attr.ib(type=str, validator=attr.validators.instance_of(str))
    name = attr.ib(type=str)
    kind = attr.ib(type=StageKind, default=StageKind.LINEAR, converter=_to_stage_kind)
    next = attr.ib(type=Tuple[str, ...], factory=tuple, converter=ids_to_tuple)
    can_proceed_to = attr.ib(
        type=Tuple[str, ...], factory=tuple, converter=ids_to_tuple
    )
    sub_stages = attr.ib(
        type=Tuple[SubStage, ...],
        factory=tuple,
        converter=to_tuple,
        validator=_unique_ids,
    )

    @property
    def is_terminal(self) -> bool:
        return self.kind is StageKind.TERMINAL

    @property
    def is_cycle(self) -> bool:
        return self.kind is StageKind.CYCLE

    @property
    def has_outgoing_edges(self) -> bool:
        return bool(self.next or self.can_proceed_to)

    @property
    def first_sub_stage(self) -> Optional[SubStage]:
        return first_or_none(self.sub_stages)

    def sub_stage(self, sub_stage_id: Optional[str]) -> Optional[SubStage]:
        """Return the sub-stage with the given id, or ``None``."""
        return find_by_id(self.sub_stages, sub_stage_id)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.id})"


@attr.s(frozen=True)
class RootStage:
    """The synthetic stage of a task that joined a workflow but has no stage yet.

    It is never stored in a workflow's stages. Code should recognise it by type, not by
    its ``id``, so an author-defined stage that happens to share the id is never
    mistaken for it.

    :ivar Optional[str] first_stage_id: The id of the workflow's first stage, if any.
    """

    first_stage_id = attr.ib(type=Optional[str], default=None)
    id: ClassVar[str] = ROOT_STAGE_ID
    name: ClassVar[str] = "Root Task"
    kind: ClassVar[StageKind] = StageKind.LINEAR
    can_proceed_to: ClassVar[Tuple[str, ...]] = ()
    sub_stages: ClassVar[Tuple[SubStage, ...]] = ()

    @property
    def next(self) -> Tuple[str, ...]:
        return ids_to_tuple(self.first_stage_id)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.first_stage_id})"


AnyStage = Union[Stage, RootStage]


@attr.s(frozen=True)
class WorkflowMetadata(_Serializable):
    """Authoring information about a workflow definition.

    :ivar str version: A free-form version label.
    :ivar Optional[str] created: When the definition was created.
    :ivar Optional[str] last_modified: When the definition was last changed.
    """

    version = attr.ib(type=str)
    created = attr.ib(type=Optional[str], default=None)
    last_modified = attr.ib(type=Optional[str], default=None)


@attr.s(frozen=True)
class WorkflowDefinition(_Serializable):
    """A named, ordered set of stages that tasks progress through.

    :ivar str id: The identifier tasks use to refer to this workflow.
    :ivar str name: The display name of the workflow.
    :ivar Tuple[Stage,...] stages: The stages, in their canonical order.
    :ivar str description: A free-form description.
    :ivar Optional[WorkflowMetadata] metadata: Authoring information, if any.
    """

    id = attr.ib(type=str, validator=attr.validators.instance_of(str))
    name = attr.ib(type=str)
    stages = attr.ib(type=Tuple[Stage, ...], converter=to_tuple, validator=_unique_ids)
    description = attr.ib(type=str, default="")
    metadata = attr.ib(type=Optional[WorkflowMetadata], default=None)

    @property
    def first_stage(self) -> Optional[Stage]:
        return first_or_none(self.stages)

    def stage(self, stage_id: Optional[str]) -> Optional[Stage]:
        """Return the stage with the given id, or ``None``."""
        return find_by_id(self.stages, stage_id)

    def root_stage(self) -> RootStage:
        """Build the synthetic root stage for this workflow."""
        first = self.first_stage
        return RootStage(first.id if first is not None else None)

    def successor(self, stage: Stage) -> Optional[Stage]:
        """Return the stage positionally following ``stage``, or ``None``."""
        index = index_by_id(self.stages, stage.id)
        if index is None or index + 1 >= len(self.stages):
            return None
        return self.stages[index + 1]

    def is_last(self, stage: Stage) -> bool:
        """Whether ``stage`` is the final element of the canonical ordering."""
        return bool(self.stages) and self.stages[-1].id == stage.id

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.id})"


def _require(obj: dict, key: str, cls: type) -> Any:
    if not isinstance(obj, dict):
        raise WorkflowDefinitionError(f"Expected a mapping for {cls.__name__}")
    try:
        return obj[key]
    except KeyError:
        raise WorkflowDefinitionError(
            f"{cls.__name__} is missing required key '{key}'"
        ) from None


def _structure_sub_stage(obj: dict, cls: Type[SubStage]) -> SubStage:
    sub_stage_id = _require(obj, "id", cls)
    return cls(
        id=sub_stage_id, name=obj.get("name", sub_stage_id), next=obj.get("next")
    )


def _unstructure_sub_stage(obj: SubStage) -> dict:
    d = {"id": obj.id, "name": obj.name}
    if obj.next is not None:
        d["next"] = obj.next
    return d


def _structure_stage(obj: dict, cls: Type[Stage]) -> Stage:
    stage_id = _require(obj, "id", cls)
    return cls(
        id=stage_id,
        name=obj.get("name", stage_id),
        kind=obj.get("type", StageKind.LINEAR.value),
        next=obj.get("next"),
        can_proceed_to=obj.get("canProceedTo"),
        sub_stages=[cattr.structure(s, SubStage) for s in obj.get("subStages") or []],
    )


def _unstructure_stage(obj: Stage) -> dict:
    d: dict = {"id": obj.id, "name": obj.name, "type": obj.kind.value}
    if len(obj.next) == 1:
        d["next"] = obj.next[0]
    elif obj.next:
        d["next"] = list(obj.next)
    if obj.can_proceed_to:
        d["canProceedTo"] = list(obj.can_proceed_to)
    if obj.sub_stages:
        d["subStages"] = [cattr.unstructure(s) for s in obj.sub_stages]
    return d


def _structure_metadata(obj: dict, cls: Type[WorkflowMetadata]) -> WorkflowMetadata:
    return cls(
        version=str(obj.get("version", "")),
        created=obj.get("created"),
        last_modified=obj.get("lastModified"),
    )


def _unstructure_metadata(obj: WorkflowMetadata) -> dict:
    return {
        "version": obj.version,
        "created": obj.created,
        "lastModified": obj.last_modified,
    }


def _structure_workflow(obj: dict, cls: Type[WorkflowDefinition]) -> WorkflowDefinition:
    workflow_id = _require(obj, "id", cls)
    metadata = obj.get("metadata")
    return cls(
        id=workflow_id,
        name=obj.get("name", workflow_id),
        stages=[cattr.structure(s, Stage) for s in obj.get("stages") or []],
        description=obj.get("description") or "",
        metadata=None
        if metadata is None
        else cattr.structure(metadata, WorkflowMetadata),
    )


def _unstructure_workflow(obj: WorkflowDefinition) -> dict:
    d = {
        "id": obj.id,
        "name": obj.name,
        "description": obj.description,
        "stages": [cattr.unstructure(s) for s in obj.stages],
    }
    if obj.metadata is not None:
        d["metadata"] = cattr.unstructure(obj.metadata)
    return d


cattr.register_structure_hook(SubStage, _structure_sub_stage)
cattr.register_unstructure_hook(SubStage, _unstructure_sub_stage)
cattr.register_structure_hook(Stage, _structure_stage)
cattr.register_unstructure_hook(Stage, _unstructure_stage)
cattr.register_structure_hook(WorkflowMetadata, _structure_metadata)
cattr.register_unstructure_hook(WorkflowMetadata, _unstructure_metadata)
cattr.register_structure_hook(WorkflowDefinition, _structure_workflow)
cattr.register_unstructure_hook(WorkflowDefinition, _unstructure_workflow)
