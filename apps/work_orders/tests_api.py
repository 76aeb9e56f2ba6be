from datetime import date, timedelta

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.accounts.models import User, Role
from .models import WorkOrder, WorkOrderLog, WorkOrderStatus
from .services import CANCEL_NOTE, WorkOrderService


class WorkOrderAPITests(APITestCase):

    def setUp(self):
        self.manager = User.objects.create_user(
            username="manager", password="S3cure-pass!", name="John Manager", role=Role.PRODUCTION_MANAGER
        )
        self.op1 = User.objects.create_user(
            username="operator1", password="S3cure-pass!", name="Sarah Johnson", role=Role.OPERATOR
        )
        self.op2 = User.objects.create_user(
            username="operator2", password="S3cure-pass!", name="Mike Chen", role=Role.OPERATOR
        )
        self.deadline = date.today() + timedelta(days=7)
        self.list_url = reverse("work-order-list")

    def make_order(self, operator=None, **kwargs):
        data = {
            "product_name": "Drill bit 6mm",
            "quantity": 100,
            "deadline": self.deadline,
            "operator_id": (operator or self.op1).pk,
        }
        data.update(kwargs)
        return WorkOrderService.create_work_order(actor=self.manager, **data)

    def detail_url(self, work_order):
        return reverse("work-order-detail", args=[work_order.pk])

    def transition_url(self, work_order):
        return reverse("work-order-transition", args=[work_order.pk])

    def test_requires_authentication(self):
        response = self.client.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_manager_creates_work_order(self):
        self.client.force_authenticate(self.manager)

        response = self.client.post(self.list_url, {
            "product_name": "End mill 8mm",
            "quantity": 25,
            "deadline": self.deadline.isoformat(),
            "operator_id": str(self.op1.pk),
            "notes": "Priority customer",
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], WorkOrderStatus.PENDING)
        self.assertTrue(response.data["number"].startswith("WO-"))
        self.assertEqual(response.data["operator"]["username"], "operator1")

        log = WorkOrderLog.objects.get(work_order_id=response.data["id"])
        self.assertIsNone(log.previous_status)
        self.assertEqual(log.notes, "Priority customer")

    def test_create_with_bad_input(self):
        self.client.force_authenticate(self.manager)

        response = self.client.post(self.list_url, {
            "product_name": "End mill 8mm",
            "quantity": 0,
            "deadline": self.deadline.isoformat(),
            "operator_id": str(self.op1.pk),
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(WorkOrder.objects.exists())

    def test_create_with_non_operator_assignee(self):
        self.client.force_authenticate(self.manager)

        response = self.client.post(self.list_url, {
            "product_name": "End mill 8mm",
            "quantity": 5,
            "deadline": self.deadline.isoformat(),
            "operator_id": str(self.manager.pk),
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "validation_error")
        self.assertIn("operator_id", response.data["errors"])

    def test_operator_cannot_create(self):
        self.client.force_authenticate(self.op1)

        response = self.client.post(self.list_url, {
            "product_name": "End mill 8mm",
            "quantity": 5,
            "deadline": self.deadline.isoformat(),
            "operator_id": str(self.op1.pk),
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "not_permitted")

    def test_list_is_paginated_and_scoped(self):
        for i in range(12):
            self.make_order(operator=self.op1 if i % 2 else self.op2, product_name=f"Batch {i}")

        self.client.force_authenticate(self.manager)
        response = self.client.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 12)
        self.assertEqual(len(response.data["results"]), 10)

        response = self.client.get(self.list_url, {"page": 2, "page_size": 50})
        self.assertEqual(len(response.data["results"]), 2)

        self.client.force_authenticate(self.op1)
        response = self.client.get(self.list_url)
        self.assertEqual(response.data["count"], 6)
        self.assertTrue(all(row["operator"]["id"] == str(self.op1.pk) for row in response.data["results"]))

    def test_list_filters(self):
        self.make_order(product_name="Drill bit 6mm")
        self.make_order(product_name="End mill 8mm", status=WorkOrderStatus.IN_PROGRESS)

        self.client.force_authenticate(self.manager)

        response = self.client.get(self.list_url, {"search": "mill"})
        self.assertEqual([row["product_name"] for row in response.data["results"]], ["End mill 8mm"])

        response = self.client.get(self.list_url, {"status": WorkOrderStatus.PENDING})
        self.assertEqual([row["product_name"] for row in response.data["results"]], ["Drill bit 6mm"])

        response = self.client.get(self.list_url, {"status": "Shipped"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("status", response.data["errors"])

    def test_retrieve_includes_history(self):
        work_order = self.make_order(notes="first")
        WorkOrderService.transition_status(work_order.pk, self.op1, WorkOrderStatus.IN_PROGRESS, 10, notes="started")

        self.client.force_authenticate(self.op1)
        response = self.client.get(self.detail_url(work_order))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], WorkOrderStatus.IN_PROGRESS)
        self.assertEqual(
            [entry["new_status"] for entry in response.data["status_logs"]],
            [WorkOrderStatus.IN_PROGRESS, WorkOrderStatus.PENDING],
        )
        self.assertEqual(response.data["latest_notes"], "started")

    def test_retrieve_other_operators_order(self):
        work_order = self.make_order(operator=self.op1)
        self.client.force_authenticate(self.op2)

        response = self.client.get(self.detail_url(work_order))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_retrieve_unknown(self):
        self.client.force_authenticate(self.manager)

        response = self.client.get(reverse("work-order-detail", args=["00000000-0000-0000-0000-000000000000"]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["code"], "not_found")

    def test_operator_transition(self):
        work_order = self.make_order()
        self.client.force_authenticate(self.op1)

        response = self.client.post(self.transition_url(work_order), {
            "status": WorkOrderStatus.IN_PROGRESS,
            "quantity_change": 10,
            "notes": "Started",
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], WorkOrderStatus.IN_PROGRESS)
        self.assertEqual(response.data["quantity"], 10)
        self.assertEqual(response.data["version"], 2)

    def test_illegal_transition_is_422(self):
        work_order = self.make_order()
        self.client.force_authenticate(self.op1)

        response = self.client.post(self.transition_url(work_order), {
            "status": WorkOrderStatus.COMPLETED,
            "quantity_change": 10,
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data["code"], "invalid_transition")
        self.assertEqual(response.data["error"], "Invalid status transition: Pending -> Completed.")

    def test_transition_by_other_operator_is_403(self):
        work_order = self.make_order(operator=self.op1)
        self.client.force_authenticate(self.op2)

        response = self.client.post(self.transition_url(work_order), {
            "status": WorkOrderStatus.IN_PROGRESS,
            "quantity_change": 10,
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(WorkOrderLog.objects.filter(work_order=work_order).count(), 1)

    def test_transition_with_stale_version_is_409(self):
        work_order = self.make_order()
        self.client.force_authenticate(self.op1)

        response = self.client.post(self.transition_url(work_order), {
            "status": WorkOrderStatus.IN_PROGRESS,
            "quantity_change": 10,
            "version": 7,
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "conflict")

    def test_transition_rejects_negative_quantity(self):
        work_order = self.make_order()
        self.client.force_authenticate(self.op1)

        response = self.client.post(self.transition_url(work_order), {
            "status": WorkOrderStatus.IN_PROGRESS,
            "quantity_change": -3,
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_patch_sets_any_status(self):
        work_order = self.make_order()
        self.client.force_authenticate(self.manager)

        response = self.client.patch(self.detail_url(work_order), {
            "status": WorkOrderStatus.COMPLETED,
            "notes": "Finished on the night shift",
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], WorkOrderStatus.COMPLETED)
        latest = WorkOrderLog.objects.filter(work_order=work_order).first()
        self.assertEqual(latest.previous_status, WorkOrderStatus.PENDING)
        self.assertEqual(latest.notes, "Finished on the night shift")

    def test_manager_put_requires_all_fields(self):
        work_order = self.make_order()
        self.client.force_authenticate(self.manager)

        response = self.client.put(self.detail_url(work_order), {"quantity": 3}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.put(self.detail_url(work_order), {
            "product_name": "Drill bit 6mm",
            "quantity": 3,
            "deadline": self.deadline.isoformat(),
            "operator_id": str(self.op2.pk),
            "status": WorkOrderStatus.PENDING,
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["operator"]["username"], "operator2")
        self.assertEqual(WorkOrderLog.objects.filter(work_order=work_order).count(), 1)

    def test_operator_cannot_patch(self):
        work_order = self.make_order()
        self.client.force_authenticate(self.op1)

        response = self.client.patch(self.detail_url(work_order), {"quantity": 1}, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_cancels(self):
        work_order = self.make_order()
        self.client.force_authenticate(self.manager)

        response = self.client.delete(self.detail_url(work_order))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], WorkOrderStatus.CANCELED)
        self.assertTrue(WorkOrder.objects.filter(pk=work_order.pk).exists())
        latest = WorkOrderLog.objects.filter(work_order=work_order).first()
        self.assertEqual(latest.notes, CANCEL_NOTE)

        self.client.force_authenticate(self.op1)
        response = self.client.post(self.transition_url(work_order), {
            "status": WorkOrderStatus.IN_PROGRESS,
            "quantity_change": 1,
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_other_operator_is_403_before_quantity_is_checked(self):
        work_order = self.make_order(operator=self.op1)
        self.client.force_authenticate(self.op2)

        response = self.client.post(self.transition_url(work_order), {
            "status": WorkOrderStatus.IN_PROGRESS,
            "quantity_change": -1,
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "not_permitted")

    def test_canceled_order_is_422_before_quantity_is_checked(self):
        work_order = WorkOrderService.cancel_work_order(self.make_order().pk, self.manager)
        self.client.force_authenticate(self.op1)

        response = self.client.post(self.transition_url(work_order), {
            "status": WorkOrderStatus.PENDING,
            "quantity_change": -1,
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data["code"], "invalid_transition")

    def test_unknown_status_is_400(self):
        work_order = self.make_order()
        self.client.force_authenticate(self.op1)

        response = self.client.post(self.transition_url(work_order), {
            "status": "Shipped",
            "quantity_change": 1,
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("status", response.data["errors"])

    def test_page_past_the_end_returns_last_page(self):
        for i in range(12):
            self.make_order(product_name=f"Batch {i}")
        self.client.force_authenticate(self.manager)

        response = self.client.get(self.list_url, {"page": 99})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 12)
        self.assertEqual(len(response.data["results"]), 2)

        last_page = self.client.get(self.list_url, {"page": 2})
        self.assertEqual(
            [row["id"] for row in response.data["results"]],
            [row["id"] for row in last_page.data["results"]],
        )
