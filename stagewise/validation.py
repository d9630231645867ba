from typing import List

from stagewise.models import Stage, WorkflowDefinition


def _stage_warnings(workflow: WorkflowDefinition, stage: Stage) -> List[str]:
    warnings = []
    stage_ids = {s.id for s in workflow.stages}
    if stage.is_terminal and stage.has_outgoing_edges:
        warnings.append(f"Terminal stage '{stage.id}' has links that will be ignored")
    for target in stage.next + stage.can_proceed_to:
        if target not in stage_ids:
            warnings.append(f"Stage '{stage.id}' links to unknown stage '{target}'")
    if stage.sub_stages and not stage.is_cycle:
        warnings.append(
            f"Stage '{stage.id}' has sub-stages but is not a cycle, "
            "they will be ignored"
        )
    sub_stage_ids = {s.id for s in stage.sub_stages}
    for sub_stage in stage.sub_stages:
        if sub_stage.next is not None and sub_stage.next not in sub_stage_ids:
            warnings.append(
                f"Sub-stage '{stage.id}.{sub_stage.id}' links to unknown sub-stage "
                f"'{sub_stage.next}'"
            )
    return warnings


def validate_definition(workflow: WorkflowDefinition) -> List[str]:
    """Check a workflow for links and shapes the engine will silently ignore.

    Structural problems, like duplicate ids, are rejected when the definition is built.
    This reports the problems that still leave a usable workflow.

    :param workflow: The workflow to check.
    :return: A list of warnings, empty if the workflow looks sound.
    """
    if not workflow.stages:
        return [f"Workflow '{workflow.id}' has no stages"]
    return [w for stage in workflow.stages for w in _stage_warnings(workflow, stage)]
