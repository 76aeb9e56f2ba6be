# apps/work_orders/tests.py
from datetime import date, timedelta
from unittest.mock import patch

from django.core.exceptions import ValidationError
from django.test import TestCase

from apps.accounts.models import User, Role
from apps.utils.exceptions import (
    AuthorizationError,
    BusinessValidationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from . import audit, selectors
from .models import WorkOrder, WorkOrderLog, WorkOrderSequence, WorkOrderStatus
from .numbering import allocate_number
from .services import CANCEL_NOTE, WorkOrderService
from .transitions import can_transition, is_terminal

Status = WorkOrderStatus


class WorkOrderTestMixin:

    def setUp(self):
        self.manager = User.objects.create_user(
            username="manager", name="John Manager", role=Role.PRODUCTION_MANAGER
        )
        self.op1 = User.objects.create_user(username="operator1", name="Sarah Johnson", role=Role.OPERATOR)
        self.op2 = User.objects.create_user(username="operator2", name="Mike Chen", role=Role.OPERATOR)
        self.deadline = date.today() + timedelta(days=7)

    def make_order(self, operator=None, status=Status.PENDING, product_name="Drill bit 6mm", quantity=100,
                   deadline=None, notes=None):
        return WorkOrderService.create_work_order(
            actor=self.manager,
            product_name=product_name,
            quantity=quantity,
            deadline=deadline or self.deadline,
            operator_id=(operator or self.op1).pk,
            status=status,
            notes=notes,
        )

    def assert_history_matches(self, work_order):
        work_order.refresh_from_db()
        latest = audit.history(work_order.pk).first()
        self.assertEqual(latest.new_status, work_order.status)


class TransitionGraphTests(TestCase):

    def test_forward_steps_only(self):
        self.assertTrue(can_transition(Status.PENDING, Status.IN_PROGRESS))
        self.assertTrue(can_transition(Status.IN_PROGRESS, Status.COMPLETED))

        self.assertFalse(can_transition(Status.PENDING, Status.COMPLETED))
        self.assertFalse(can_transition(Status.IN_PROGRESS, Status.PENDING))
        self.assertFalse(can_transition(Status.PENDING, Status.CANCELED))
        self.assertFalse(can_transition(Status.PENDING, Status.PENDING))

    def test_terminal_states_go_nowhere(self):
        for terminal in (Status.COMPLETED, Status.CANCELED):
            self.assertTrue(is_terminal(terminal))
            for target in Status:
                self.assertFalse(can_transition(terminal, target))


class NumberingTests(WorkOrderTestMixin, TestCase):

    def test_sequential_numbers_per_day(self):
        day = date(2025, 3, 7)
        self.assertEqual(allocate_number(day), "WO-20250307-001")
        self.assertEqual(allocate_number(day), "WO-20250307-002")
        self.assertEqual(allocate_number(date(2025, 3, 8)), "WO-20250308-001")
        self.assertEqual(WorkOrderSequence.objects.get(day=day).last_value, 2)

    def test_counter_starts_after_existing_numbers(self):
        WorkOrder.objects.create(
            number="WO-20250307-041", product_name="Legacy", quantity=1, deadline=self.deadline,
            operator=self.op1, created_by=self.manager,
        )
        self.assertEqual(allocate_number(date(2025, 3, 7)), "WO-20250307-042")

    def test_created_orders_use_todays_date(self):
        with patch("apps.work_orders.numbering.timezone.localdate", return_value=date(2025, 3, 7)):
            first = self.make_order()
            second = self.make_order(operator=self.op2)

        self.assertEqual(first.number, "WO-20250307-001")
        self.assertEqual(second.number, "WO-20250307-002")


class CreateWorkOrderTests(WorkOrderTestMixin, TestCase):

    def test_create_writes_initial_log_entry(self):
        work_order = self.make_order(notes="Rush job")

        self.assertEqual(work_order.status, Status.PENDING)
        self.assertEqual(work_order.created_by, self.manager)
        self.assertEqual(work_order.version, 1)

        logs = list(audit.history(work_order.pk))
        self.assertEqual(len(logs), 1)
        self.assertIsNone(logs[0].previous_status)
        self.assertEqual(logs[0].new_status, Status.PENDING)
        self.assertEqual(logs[0].notes, "Rush job")
        self.assertEqual(logs[0].changed_by, self.manager)

    def test_create_directly_into_any_status(self):
        work_order = self.make_order(status=Status.COMPLETED)

        self.assertEqual(work_order.status, Status.COMPLETED)
        self.assert_history_matches(work_order)

    def test_only_managers_create(self):
        with self.assertRaises(AuthorizationError):
            WorkOrderService.create_work_order(
                actor=self.op1, product_name="X", quantity=1, deadline=self.deadline, operator_id=self.op1.pk,
            )
        self.assertFalse(WorkOrder.objects.exists())

    def test_validation_reports_every_bad_field(self):
        with self.assertRaises(BusinessValidationError) as ctx:
            WorkOrderService.create_work_order(
                actor=self.manager, product_name="  ", quantity=0, deadline="not-a-date",
                operator_id=self.manager.pk, status="Shipped",
            )

        self.assertEqual(
            set(ctx.exception.errors),
            {"product_name", "quantity", "deadline", "operator_id", "status"},
        )
        self.assertFalse(WorkOrder.objects.exists())
        self.assertFalse(WorkOrderLog.objects.exists())

    def test_operator_must_exist(self):
        with self.assertRaises(BusinessValidationError) as ctx:
            WorkOrderService.create_work_order(
                actor=self.manager, product_name="X", quantity=1, deadline=self.deadline,
                operator_id="00000000-0000-0000-0000-000000000000",
            )
        self.assertIn("operator_id", ctx.exception.errors)


class OperatorTransitionTests(WorkOrderTestMixin, TestCase):

    def test_full_lifecycle(self):
        work_order = self.make_order()

        work_order = WorkOrderService.transition_status(work_order.pk, self.op1, Status.IN_PROGRESS, 10)
        self.assertEqual(work_order.status, Status.IN_PROGRESS)
        self.assertEqual(work_order.quantity, 10)
        latest = audit.history(work_order.pk).first()
        self.assertEqual((latest.previous_status, latest.new_status), (Status.PENDING, Status.IN_PROGRESS))

        work_order = WorkOrderService.transition_status(work_order.pk, self.op1, Status.COMPLETED, 50, notes="done")
        self.assertEqual(work_order.status, Status.COMPLETED)
        self.assertEqual(work_order.quantity, 50)
        self.assertEqual(audit.latest_notes(work_order.pk), "done")

        with self.assertRaises(InvalidTransitionError):
            WorkOrderService.transition_status(work_order.pk, self.op1, Status.PENDING, 50)

        self.assertEqual(WorkOrderLog.objects.filter(work_order=work_order).count(), 3)
        self.assert_history_matches(work_order)

    def test_each_accepted_transition_adds_one_entry(self):
        work_order = self.make_order()
        before = WorkOrderLog.objects.count()

        WorkOrderService.transition_status(work_order.pk, self.op1, Status.IN_PROGRESS, 5)

        self.assertEqual(WorkOrderLog.objects.count(), before + 1)
        work_order.refresh_from_db()
        self.assertEqual(work_order.version, 2)

    def test_terminal_states_reject_every_request(self):
        for terminal in (Status.COMPLETED, Status.CANCELED):
            work_order = self.make_order(status=terminal)
            for requested in Status:
                with self.assertRaises(InvalidTransitionError):
                    WorkOrderService.transition_status(work_order.pk, self.op1, requested, 1)
            self.assertEqual(WorkOrderLog.objects.filter(work_order=work_order).count(), 1)

    def test_skipping_a_step_is_rejected(self):
        work_order = self.make_order()

        with self.assertRaises(InvalidTransitionError):
            WorkOrderService.transition_status(work_order.pk, self.op1, Status.COMPLETED, 1)

        work_order.refresh_from_db()
        self.assertEqual(work_order.status, Status.PENDING)

    def test_other_operator_is_not_authorized(self):
        work_order = self.make_order(operator=self.op1)

        for requested in (Status.IN_PROGRESS, Status.COMPLETED, Status.PENDING):
            with self.assertRaises(AuthorizationError):
                WorkOrderService.transition_status(work_order.pk, self.op2, requested, 10)

        work_order.refresh_from_db()
        self.assertEqual(work_order.status, Status.PENDING)
        self.assertEqual(work_order.quantity, 100)
        self.assertEqual(WorkOrderLog.objects.filter(work_order=work_order).count(), 1)

    def test_manager_cannot_use_operator_path(self):
        work_order = self.make_order()

        with self.assertRaises(AuthorizationError):
            WorkOrderService.transition_status(work_order.pk, self.manager, Status.IN_PROGRESS, 10)

    def test_negative_quantity_is_rejected(self):
        work_order = self.make_order()

        with self.assertRaises(BusinessValidationError) as ctx:
            WorkOrderService.transition_status(work_order.pk, self.op1, Status.IN_PROGRESS, -1)

        self.assertIn("quantity_change", ctx.exception.errors)
        work_order.refresh_from_db()
        self.assertEqual(work_order.status, Status.PENDING)

    def test_zero_quantity_is_allowed(self):
        work_order = self.make_order()
        work_order = WorkOrderService.transition_status(work_order.pk, self.op1, Status.IN_PROGRESS, 0)
        self.assertEqual(work_order.quantity, 0)

    def test_unknown_work_order(self):
        with self.assertRaises(NotFoundError):
            WorkOrderService.transition_status(
                "00000000-0000-0000-0000-000000000000", self.op1, Status.IN_PROGRESS, 1
            )
        with self.assertRaises(NotFoundError):
            WorkOrderService.transition_status("not-a-uuid", self.op1, Status.IN_PROGRESS, 1)

    def test_stale_version_is_a_conflict(self):
        work_order = self.make_order()

        with self.assertRaises(ConflictError):
            WorkOrderService.transition_status(
                work_order.pk, self.op1, Status.IN_PROGRESS, 1, expected_version=work_order.version + 1
            )
        self.assertEqual(WorkOrderLog.objects.filter(work_order=work_order).count(), 1)

    def test_lost_race_is_a_conflict(self):
        work_order = self.make_order()
        stale = WorkOrder.objects.get(pk=work_order.pk)

        # The first writer wins...
        WorkOrderService.transition_status(work_order.pk, self.op1, Status.IN_PROGRESS, 10)

        # ...the second one read the row before that write landed.
        with patch("apps.work_orders.services._get_for_update", return_value=stale):
            with self.assertRaises(ConflictError):
                WorkOrderService.transition_status(work_order.pk, self.op1, Status.IN_PROGRESS, 20)

        work_order.refresh_from_db()
        self.assertEqual(work_order.quantity, 10)
        self.assertEqual(WorkOrderLog.objects.filter(work_order=work_order).count(), 2)
        self.assert_history_matches(work_order)


class ManagerUpdateTests(WorkOrderTestMixin, TestCase):

    def test_any_status_can_be_set_and_is_logged(self):
        work_order = self.make_order(status=Status.COMPLETED)

        work_order = WorkOrderService.update_work_order(
            work_order.pk, self.manager, {"status": Status.PENDING, "notes": "Reopened for rework"}
        )

        self.assertEqual(work_order.status, Status.PENDING)
        latest = audit.history(work_order.pk).first()
        self.assertEqual(latest.previous_status, Status.COMPLETED)
        self.assertEqual(latest.new_status, Status.PENDING)
        self.assertEqual(latest.notes, "Reopened for rework")
        self.assertEqual(latest.changed_by, self.manager)

    def test_field_edits_without_status_change_do_not_log(self):
        work_order = self.make_order()

        work_order = WorkOrderService.update_work_order(
            work_order.pk, self.manager,
            {"product_name": "End mill 8mm", "quantity": 20, "status": Status.PENDING, "notes": "typo"},
        )

        self.assertEqual(work_order.product_name, "End mill 8mm")
        self.assertEqual(work_order.quantity, 20)
        self.assertEqual(work_order.version, 2)
        self.assertEqual(WorkOrderLog.objects.filter(work_order=work_order).count(), 1)

    def test_reassign_operator(self):
        work_order = self.make_order(operator=self.op1)

        work_order = WorkOrderService.update_work_order(work_order.pk, self.manager, {"operator_id": self.op2.pk})

        self.assertEqual(work_order.operator, self.op2)
        with self.assertRaises(AuthorizationError):
            WorkOrderService.transition_status(work_order.pk, self.op1, Status.IN_PROGRESS, 1)

    def test_reassign_to_non_operator_is_rejected(self):
        work_order = self.make_order()

        with self.assertRaises(BusinessValidationError) as ctx:
            WorkOrderService.update_work_order(work_order.pk, self.manager, {"operator_id": self.manager.pk})
        self.assertIn("operator_id", ctx.exception.errors)

    def test_number_and_creator_are_not_editable(self):
        work_order = self.make_order()

        with self.assertRaises(BusinessValidationError) as ctx:
            WorkOrderService.update_work_order(work_order.pk, self.manager, {"number": "WO-19990101-001"})
        self.assertIn("number", ctx.exception.errors)

    def test_operators_cannot_edit(self):
        work_order = self.make_order()

        with self.assertRaises(AuthorizationError):
            WorkOrderService.update_work_order(work_order.pk, self.op1, {"quantity": 1})

    def test_unknown_work_order(self):
        with self.assertRaises(NotFoundError):
            WorkOrderService.update_work_order(
                "00000000-0000-0000-0000-000000000000", self.manager, {"quantity": 1}
            )

    def test_stale_version_is_a_conflict(self):
        work_order = self.make_order()
        WorkOrderService.update_work_order(work_order.pk, self.manager, {"quantity": 5}, expected_version=1)

        with self.assertRaises(ConflictError):
            WorkOrderService.update_work_order(work_order.pk, self.manager, {"quantity": 6}, expected_version=1)

        work_order.refresh_from_db()
        self.assertEqual(work_order.quantity, 5)

    def test_non_numeric_version_is_a_validation_error(self):
        work_order = self.make_order()

        with self.assertRaises(BusinessValidationError) as ctx:
            WorkOrderService.update_work_order(work_order.pk, self.manager, {"quantity": 6}, expected_version="abc")
        self.assertIn("version", ctx.exception.errors)

        with self.assertRaises(BusinessValidationError):
            WorkOrderService.transition_status(work_order.pk, self.op1, Status.IN_PROGRESS, 1, expected_version="abc")


class CancelWorkOrderTests(WorkOrderTestMixin, TestCase):

    def test_cancel_from_any_status(self):
        for initial in (Status.PENDING, Status.IN_PROGRESS, Status.COMPLETED):
            work_order = self.make_order(status=initial)

            work_order = WorkOrderService.cancel_work_order(work_order.pk, self.manager)

            self.assertEqual(work_order.status, Status.CANCELED)
            latest = audit.history(work_order.pk).first()
            self.assertEqual(latest.previous_status, initial)
            self.assertEqual(latest.new_status, Status.CANCELED)
            self.assertEqual(latest.notes, CANCEL_NOTE)

        self.assertEqual(WorkOrder.objects.count(), 3)

    def test_cancel_twice_logs_once(self):
        work_order = self.make_order()

        WorkOrderService.cancel_work_order(work_order.pk, self.manager)
        WorkOrderService.cancel_work_order(work_order.pk, self.manager)

        self.assertEqual(WorkOrderLog.objects.filter(work_order=work_order).count(), 2)

    def test_operators_cannot_cancel(self):
        work_order = self.make_order()

        with self.assertRaises(AuthorizationError):
            WorkOrderService.cancel_work_order(work_order.pk, self.op1)


class AuditLogTests(WorkOrderTestMixin, TestCase):

    def test_history_is_most_recent_first(self):
        work_order = self.make_order()
        WorkOrderService.transition_status(work_order.pk, self.op1, Status.IN_PROGRESS, 1)
        WorkOrderService.transition_status(work_order.pk, self.op1, Status.COMPLETED, 2)

        statuses = [entry.new_status for entry in audit.history(work_order.pk)]

        self.assertEqual(statuses, [Status.COMPLETED, Status.IN_PROGRESS, Status.PENDING])

    def test_entries_are_immutable(self):
        work_order = self.make_order()
        entry = audit.history(work_order.pk).first()

        entry.notes = "rewritten"
        with self.assertRaises(ValidationError):
            entry.save()
        with self.assertRaises(ValidationError):
            entry.delete()

        entry.refresh_from_db()
        self.assertIsNone(entry.notes)

    def test_latest_notes_empty_history(self):
        self.assertIsNone(audit.latest_notes("00000000-0000-0000-0000-000000000000"))


class ListingTests(WorkOrderTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.bit = self.make_order(operator=self.op1, product_name="Drill bit 6mm", deadline=date(2025, 3, 10))
        self.mill = self.make_order(operator=self.op2, product_name="End mill 8mm", deadline=date(2025, 3, 20))
        self.reamer = self.make_order(
            operator=self.op1, product_name="Reamer", deadline=date(2025, 3, 30), status=Status.IN_PROGRESS
        )

    def numbers(self, page):
        return [work_order.number for work_order in page.object_list]

    def test_manager_sees_everything_newest_first(self):
        page = selectors.list_work_orders(self.manager)
        self.assertEqual(self.numbers(page), [self.reamer.number, self.mill.number, self.bit.number])

    def test_operator_only_sees_assigned_orders(self):
        filter_sets = [
            {},
            {"search": "mill"},
            {"status": Status.PENDING},
            {"from_date": "2025-03-01", "to_date": "2025-03-31"},
            {"search": self.mill.number},
        ]
        for filters in filter_sets:
            page = selectors.list_work_orders(self.op1, filters)
            self.assertTrue(
                all(work_order.operator_id == self.op1.pk for work_order in page.object_list), filters
            )

        page = selectors.list_work_orders(self.op1)
        self.assertEqual(self.numbers(page), [self.reamer.number, self.bit.number])

    def test_search_is_case_insensitive_on_number_and_product(self):
        self.assertEqual(self.numbers(selectors.list_work_orders(self.manager, {"search": "END MILL"})),
                         [self.mill.number])
        self.assertEqual(self.numbers(selectors.list_work_orders(self.manager, {"search": self.bit.number.lower()})),
                         [self.bit.number])

    def test_status_filter(self):
        page = selectors.list_work_orders(self.manager, {"status": Status.IN_PROGRESS})
        self.assertEqual(self.numbers(page), [self.reamer.number])

    def test_deadline_range_is_inclusive(self):
        page = selectors.list_work_orders(self.manager, {"from_date": "2025-03-10", "to_date": "2025-03-20"})
        self.assertEqual(self.numbers(page), [self.mill.number, self.bit.number])

    def test_invalid_filters(self):
        with self.assertRaises(BusinessValidationError):
            selectors.list_work_orders(self.manager, {"status": "Shipped"})
        with self.assertRaises(BusinessValidationError):
            selectors.list_work_orders(self.manager, {"from_date": "2025-03-31", "to_date": "2025-03-01"})

    def test_pages_of_ten(self):
        for i in range(10):
            self.make_order(product_name=f"Batch {i}")

        first = selectors.list_work_orders(self.manager, page=1)
        second = selectors.list_work_orders(self.manager, page=2)

        self.assertEqual(len(first.object_list), 10)
        self.assertEqual(len(second.object_list), 3)
        self.assertFalse(set(self.numbers(first)) & set(self.numbers(second)))

    def test_page_past_the_end_is_the_last_page(self):
        page = selectors.list_work_orders(self.manager, page=99)
        self.assertEqual(page.number, 1)
        self.assertEqual(len(page.object_list), 3)

    def test_user_without_role_cannot_list(self):
        drifter = User.objects.create_user(username="drifter", name="No Role")
        with self.assertRaises(AuthorizationError):
            selectors.list_work_orders(drifter)


class GetWorkOrderTests(WorkOrderTestMixin, TestCase):

    def test_manager_gets_order_and_history(self):
        work_order = self.make_order()
        WorkOrderService.transition_status(work_order.pk, self.op1, Status.IN_PROGRESS, 1)

        found, logs = selectors.get_work_order(work_order.pk, self.manager)

        self.assertEqual(found.pk, work_order.pk)
        self.assertEqual([entry.new_status for entry in logs], [Status.IN_PROGRESS, Status.PENDING])

    def test_operator_only_gets_assigned_orders(self):
        work_order = self.make_order(operator=self.op1)

        found, _ = selectors.get_work_order(work_order.pk, self.op1)
        self.assertEqual(found.pk, work_order.pk)

        with self.assertRaises(AuthorizationError):
            selectors.get_work_order(work_order.pk, self.op2)

    def test_unknown_id(self):
        with self.assertRaises(NotFoundError):
            selectors.get_work_order("00000000-0000-0000-0000-000000000000", self.manager)
