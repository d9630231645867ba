"""
Terminality answers one question for the parent auto-completion logic: once this task
is done, has its workflow gone as far as it goes? Only a stage with no outgoing links
that is also the last stage of the workflow counts. A stage that merely dead-ends
somewhere in the middle is assumed to be a mistake in the definition and does not
complete anything above it.
"""

from typing import Optional

from stagewise.models import Stage, WorkflowDefinition
from stagewise.resolver import ResolvedContext


def _ends_workflow(workflow: WorkflowDefinition, stage: Stage) -> bool:
    return not stage.has_outgoing_edges and workflow.is_last(stage)


def is_final(context: Optional[ResolvedContext]) -> bool:
    """Whether completing a task ends its workflow, for parent-completion purposes.

    :param context: The resolved position of the task, or ``None`` for a task that is
        not part of any workflow.
    :return: ``True`` if the task is not a workflow task or sits at the functional end
        of its workflow, ``False`` otherwise.
    """
    if context is None:
        return True
    # Completing the root only starts the first stage
    if context.is_root_task:
        return False
    stage: Stage = context.stage  # type: ignore
    if stage.is_terminal:
        return True
    sub_stage = context.sub_stage
    if stage.is_cycle and sub_stage is not None:
        return sub_stage.next is None and _ends_workflow(context.workflow, stage)
    return _ends_workflow(context.workflow, stage)
