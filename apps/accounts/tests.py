import os
from unittest.mock import patch

from django.contrib.auth.models import AnonymousUser
from django.core.management import call_command
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework import status

from apps.utils.exceptions import AuthorizationError
from .models import User, Role
from .permissions import Action, ROLE_PERMISSIONS, has_permission, permissions_for, require_permission
from .services import AccountService


class PermissionPredicateTests(TestCase):

    def setUp(self):
        self.manager = User.objects.create_user(
            username="manager", password="pass12345!", name="John Manager", role=Role.PRODUCTION_MANAGER
        )
        self.operator = User.objects.create_user(
            username="operator1", password="pass12345!", name="Sarah Johnson", role=Role.OPERATOR
        )
        self.no_role = User.objects.create_user(username="drifter", password="pass12345!", name="No Role")

    def test_manager_actions(self):
        for action in (
            Action.CREATE_WORK_ORDER,
            Action.UPDATE_WORK_ORDER,
            Action.VIEW_WORK_ORDERS,
            Action.FILTER_WORK_ORDERS,
            Action.ASSIGN_OPERATOR,
        ):
            self.assertTrue(has_permission(self.manager, action), action)

        self.assertFalse(has_permission(self.manager, Action.UPDATE_WORK_ORDER_STATUS))
        self.assertFalse(has_permission(self.manager, Action.VIEW_ASSIGNED_WORK_ORDERS))

    def test_operator_actions(self):
        self.assertEqual(
            permissions_for(self.operator),
            {Action.VIEW_ASSIGNED_WORK_ORDERS, Action.UPDATE_WORK_ORDER_STATUS},
        )
        self.assertFalse(has_permission(self.operator, Action.CREATE_WORK_ORDER))

    def test_every_action_belongs_to_exactly_one_role(self):
        granted = [action for actions in ROLE_PERMISSIONS.values() for action in actions]
        self.assertCountEqual(granted, Action.values)

    def test_user_without_role_has_nothing(self):
        self.assertEqual(permissions_for(self.no_role), frozenset())
        for action in Action:
            self.assertFalse(has_permission(self.no_role, action))

    def test_anonymous_and_inactive_users_have_nothing(self):
        self.assertFalse(has_permission(AnonymousUser(), Action.VIEW_WORK_ORDERS))
        self.assertFalse(has_permission(None, Action.VIEW_WORK_ORDERS))

        self.manager.is_active = False
        self.manager.save(update_fields=["is_active"])
        self.assertFalse(has_permission(self.manager, Action.VIEW_WORK_ORDERS))

    def test_require_permission_explains_missing_role(self):
        with self.assertRaises(AuthorizationError) as ctx:
            require_permission(self.no_role, Action.VIEW_WORK_ORDERS)
        self.assertIn("role", ctx.exception.message)

        with self.assertRaises(AuthorizationError):
            require_permission(self.operator, Action.CREATE_WORK_ORDER)


class AccountServiceTests(TestCase):

    def test_register_user_hashes_password(self):
        user = AccountService.register_user("lisa", "Lisa Wong", Role.OPERATOR, "S3cure-pass!")

        self.assertEqual(user.role, Role.OPERATOR)
        self.assertTrue(user.check_password("S3cure-pass!"))
        self.assertNotEqual(user.password, "S3cure-pass!")

    def test_list_operators_requires_assign_permission(self):
        manager = User.objects.create_user(username="m", name="M", role=Role.PRODUCTION_MANAGER)
        operator = User.objects.create_user(username="o", name="O", role=Role.OPERATOR)
        User.objects.create_user(username="gone", name="Gone", role=Role.OPERATOR, is_active=False)

        self.assertEqual(list(AccountService.list_operators(manager)), [operator])
        with self.assertRaises(AuthorizationError):
            AccountService.list_operators(operator)


class AccountAPITests(TestCase):

    def setUp(self):
        self.client = APIClient()

    def test_register_returns_tokens_and_permissions(self):
        response = self.client.post("/api/v1/accounts/register/", {
            "username": "mike",
            "name": "Mike Chen",
            "role": Role.OPERATOR,
            "password": "S3cure-pass!",
            "password_confirmation": "S3cure-pass!",
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)
        self.assertEqual(response.data["user"]["role"], Role.OPERATOR)
        self.assertIn("update-work-order-status", response.data["user"]["permissions"])

    def test_register_rejects_spaces_in_username(self):
        response = self.client.post("/api/v1/accounts/register/", {
            "username": "mike chen",
            "name": "Mike Chen",
            "role": Role.OPERATOR,
            "password": "S3cure-pass!",
            "password_confirmation": "S3cure-pass!",
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("username", response.data)
        self.assertEqual(User.objects.count(), 0)

    def test_register_rejects_mismatched_passwords(self):
        response = self.client.post("/api/v1/accounts/register/", {
            "username": "mike",
            "name": "Mike Chen",
            "role": Role.OPERATOR,
            "password": "S3cure-pass!",
            "password_confirmation": "different-pass!",
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("password_confirmation", response.data)

    def test_login_with_username_and_password(self):
        User.objects.create_user(username="manager", password="S3cure-pass!", name="John", role=Role.PRODUCTION_MANAGER)

        response = self.client.post(
            "/api/v1/accounts/token/", {"username": "manager", "password": "S3cure-pass!"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)

    def test_me_lists_granted_actions(self):
        manager = User.objects.create_user(username="manager", name="John", role=Role.PRODUCTION_MANAGER)
        self.client.force_authenticate(manager)

        response = self.client.get("/api/v1/accounts/me/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["username"], "manager")
        self.assertIn("filter-work-orders", response.data["permissions"])

    def test_operator_list_is_manager_only(self):
        manager = User.objects.create_user(username="manager", name="John", role=Role.PRODUCTION_MANAGER)
        operator = User.objects.create_user(username="op", name="Sarah", role=Role.OPERATOR)

        self.client.force_authenticate(manager)
        response = self.client.get("/api/v1/accounts/operators/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["username"] for row in response.data], ["op"])

        self.client.force_authenticate(operator)
        response = self.client.get("/api/v1/accounts/operators/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CreateAdminCommandTests(TestCase):

    @patch.dict(os.environ, {
        "ALLOW_CREATE_ADMIN_IN_PROD": "True",
        "ADMIN_USERNAME": "boss",
        "ADMIN_PASSWORD": "S3cure-pass!",
        "ADMIN_NAME": "Plant Boss",
    })
    def test_creates_manager_superuser(self):
        call_command("create_admin")

        user = User.objects.get(username="boss")
        self.assertTrue(user.is_superuser)
        self.assertEqual(user.role, Role.PRODUCTION_MANAGER)
        self.assertTrue(user.check_password("S3cure-pass!"))
