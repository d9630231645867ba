import logging
from datetime import timedelta
from test import fixtures as f
from typing import Optional
from unittest import TestCase
from unittest.mock import Mock

from freezegun import freeze_time

from stagewise.annotations import StageRef, TaskWorkflowAnnotation
from stagewise.engine import CompletionEvent, WorkflowEngine
from stagewise.settings import WorkflowSettings
from stagewise.timekeeping import DEFAULT_DURATION_FORMAT, TimeRecord

LOGGER = "stagewise.engine.WorkflowEngine"


def at(stage_id: str, sub_stage_id: Optional[str] = None) -> TaskWorkflowAnnotation:
    return TaskWorkflowAnnotation("development", StageRef(stage_id, sub_stage_id))


class EngineTestCase(TestCase):
    def setUp(self) -> None:
        self.workflow = f.development_workflow()
        self.engine = self.engine_with()

    def engine_with(self, **settings: object) -> WorkflowEngine:
        return WorkflowEngine(
            WorkflowSettings(definitions=[self.workflow], **settings)  # type: ignore
        )


class TestComplete(EngineTestCase):
    def test_root(self) -> None:
        plan = self.engine.complete(TaskWorkflowAnnotation.root("development"))
        assert plan is not None
        self.assertTrue(plan.context.is_root_task)
        self.assertEqual(plan.next_stage, self.workflow.stages[0])
        self.assertIsNone(plan.child_sub_stage)
        self.assertTrue(plan.create_next_task)
        self.assertFalse(plan.is_final)

    def test_into_cycle(self) -> None:
        plan = self.engine.complete(at("planning"))
        assert plan is not None
        development = self.workflow.stages[1]
        self.assertEqual(plan.next_stage, development)
        self.assertIsNone(plan.next_sub_stage)
        self.assertEqual(plan.child_sub_stage, development.sub_stages[0])

    def test_within_cycle(self) -> None:
        plan = self.engine.complete(at("development", "review"))
        assert plan is not None
        development = self.workflow.stages[1]
        self.assertEqual(plan.next_stage, development)
        self.assertEqual(plan.next_sub_stage, development.sub_stages[0])
        self.assertIsNone(plan.child_sub_stage)
        self.assertTrue(plan.create_next_task)

    def test_terminal(self) -> None:
        plan = self.engine.complete(at("monitoring"))
        assert plan is not None
        self.assertTrue(plan.transition.same_stage)
        self.assertIsNone(plan.next_stage)
        self.assertFalse(plan.create_next_task)
        self.assertTrue(plan.is_final)

    def test_inherited_workflow(self) -> None:
        lookup = Mock(return_value="development")
        plan = self.engine.complete(
            TaskWorkflowAnnotation.at_stage("deployment"),
            task_ref="task-1",
            ancestor_lookup=lookup,
        )
        assert plan is not None
        lookup.assert_called_once_with("task-1")
        self.assertEqual(plan.next_stage, self.workflow.stages[3])

    def test_no_annotation(self) -> None:
        self.assertIsNone(self.engine.complete(None))

    def test_unresolved(self) -> None:
        with self.assertLogs(self.engine._logger, logging.WARNING) as logs:
            plan = self.engine.complete(TaskWorkflowAnnotation.root("ghost"))
        self.assertIsNone(plan)
        self.assertListEqual(
            logs.output, [f"WARNING:{LOGGER}:Unable to find workflow 'ghost'"]
        )

    def test_disabled(self) -> None:
        engine = self.engine_with(enable_workflow=False)
        with self.assertLogs(engine._logger, logging.DEBUG):
            self.assertIsNone(engine.complete(at("planning")))

    def test_no_next_task(self) -> None:
        plan = self.engine_with(auto_add_next_task=False).complete(at("planning"))
        assert plan is not None
        self.assertEqual(plan.next_stage, self.workflow.stages[1])
        self.assertFalse(plan.create_next_task)

    def test_markers(self) -> None:
        engine = self.engine_with(
            auto_remove_last_stage_marker=True, remove_timestamp_on_transition=True
        )
        plan = engine.complete(at("planning"))
        assert plan is not None
        self.assertTrue(plan.remove_stage_marker)
        self.assertTrue(plan.remove_timestamp)
        root_plan = engine.complete(TaskWorkflowAnnotation.root("development"))
        assert root_plan is not None
        self.assertFalse(root_plan.remove_stage_marker)

    def test_markers_off(self) -> None:
        plan = self.engine.complete(at("planning"))
        assert plan is not None
        self.assertFalse(plan.remove_stage_marker)
        self.assertFalse(plan.remove_timestamp)

    def test_default_settings(self) -> None:
        plan = WorkflowEngine().complete(
            TaskWorkflowAnnotation.root("project_workflow")
        )
        assert plan is not None
        self.assertEqual(plan.transition.next_stage_id, "planning")


class TestCompleteTiming(EngineTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.engine = self.engine_with(
            auto_add_timestamp=True,
            calculate_spent_time=True,
            calculate_full_spent_time=True,
        )

    def test_stage_time(self) -> None:
        now = f.T0 + timedelta(hours=1)
        plan = self.engine.complete(
            at("deployment"), record=f.time_record("deployment"), now=now
        )
        assert plan is not None
        self.assertEqual(plan.next_record, TimeRecord("monitoring", None, now))
        self.assertEqual(plan.stage_elapsed, timedelta(hours=1))
        assert plan.stage_elapsed is not None
        self.assertEqual(plan.format_elapsed(plan.stage_elapsed), "01:00:00")
        self.assertIsNone(plan.total_elapsed)

    def test_next_record_in_cycle(self) -> None:
        plan = self.engine.complete(at("development", "coding"), now=f.T0)
        assert plan is not None
        self.assertEqual(plan.next_record, TimeRecord("development", "testing", f.T0))
        self.assertIsNone(plan.closed_record)

    @freeze_time(f.T0)
    def test_defaults_to_now(self) -> None:
        plan = self.engine.complete(at("planning"))
        assert plan is not None
        assert plan.next_record is not None
        self.assertEqual(plan.next_record.started_at, f.T0)

    def test_no_timestamp_without_next_task(self) -> None:
        plan = self.engine.complete(at("monitoring"), now=f.T0)
        assert plan is not None
        self.assertIsNone(plan.next_record)

    def test_total_on_final(self) -> None:
        history = [
            f.time_record("planning", elapsed=timedelta(hours=1)),
            f.time_record("deployment", elapsed=timedelta(hours=2)),
        ]
        plan = self.engine.complete(
            at("monitoring"),
            record=f.time_record("monitoring"),
            history=history,
            now=f.T0 + timedelta(minutes=30),
        )
        assert plan is not None
        self.assertEqual(plan.total_elapsed, timedelta(hours=3, minutes=30))
        self.assertEqual(plan.format_elapsed(plan.total_elapsed), "03:30:00")

    def test_spent_time_format(self) -> None:
        plan = self.engine_with(spent_time_format="H:mm").complete(at("planning"))
        assert plan is not None
        self.assertEqual(plan.format_elapsed(timedelta(minutes=75)), "1:15")

    def test_spent_time_off(self) -> None:
        plan = self.engine_with(auto_add_timestamp=True).complete(
            at("monitoring"),
            record=f.time_record("monitoring"),
            history=[f.time_record("planning", elapsed=timedelta(hours=1))],
            now=f.T0,
        )
        assert plan is not None
        self.assertIsNone(plan.closed_record)
        self.assertIsNone(plan.total_elapsed)


class TestCompleteMany(EngineTestCase):
    def test_skips_bad_tasks(self) -> None:
        events = [
            CompletionEvent(at("planning")),
            CompletionEvent(TaskWorkflowAnnotation.at_stage("deployment"), "orphan"),
            CompletionEvent(None),
            CompletionEvent(TaskWorkflowAnnotation.at_stage("deployment"), "child"),
        ]
        lookup = {"child": "development"}.get
        with self.assertLogs(self.engine._logger, logging.WARNING) as logs:
            plans = self.engine.complete_many(events, lookup, now=f.T0)
        self.assertEqual(len(plans), 4)
        first, orphan, plain, child = plans
        assert first is not None and child is not None
        self.assertEqual(first.next_stage, self.workflow.stages[1])
        self.assertIsNone(orphan)
        self.assertIsNone(plain)
        self.assertEqual(child.next_stage, self.workflow.stages[3])
        self.assertListEqual(
            logs.output,
            [f"WARNING:{LOGGER}:Unable to find an enclosing workflow to inherit"],
        )

    def test_shared_now(self) -> None:
        engine = self.engine_with(auto_add_timestamp=True)
        plans = engine.complete_many(
            [CompletionEvent(at("planning")), CompletionEvent(at("deployment"))],
            now=f.T0,
        )
        self.assertListEqual(
            [p.next_record.started_at for p in plans],  # type: ignore
            [f.T0, f.T0],
        )


class TestIsFinal(EngineTestCase):
    def test_is_final(self) -> None:
        self.assertTrue(self.engine.is_final(None))
        self.assertTrue(self.engine.is_final(at("monitoring")))
        self.assertFalse(self.engine.is_final(at("planning")))
        self.assertFalse(
            self.engine.is_final(TaskWorkflowAnnotation.root("development"))
        )

    def test_unresolved_is_final(self) -> None:
        with self.assertLogs(self.engine._logger, logging.WARNING):
            self.assertTrue(self.engine.is_final(at("shipping")))


class TestJumpTargets(EngineTestCase):
    def test_jump_targets(self) -> None:
        self.assertListEqual(
            self.engine.jump_targets(at("development", "coding")),
            [self.workflow.stages[2]],
        )

    def test_unresolved(self) -> None:
        with self.assertLogs(self.engine._logger, logging.WARNING):
            self.assertListEqual(self.engine.jump_targets(at("shipping")), [])


class TestCompletionPlan(EngineTestCase):
    def test_default_spent_time_format(self) -> None:
        plan = self.engine.complete(at("planning"))
        assert plan is not None
        self.assertEqual(plan.spent_time_format, DEFAULT_DURATION_FORMAT)
        self.assertEqual(plan.format_elapsed(timedelta(seconds=61)), "00:01:01")

    @freeze_time(f.T0)
    def test_batch_defaults_to_now(self) -> None:
        engine = self.engine_with(auto_add_timestamp=True)
        (plan,) = engine.complete_many([CompletionEvent(at("planning"))])
        assert plan is not None and plan.next_record is not None
        self.assertEqual(plan.next_record.started_at, f.T0)
