"""
Role -> action table and the single permission predicate.

Every authorization decision in the project goes through `has_permission`;
views wrap it with `HasAction`, services call `require_permission`.
"""
from django.db import models
from rest_framework.permissions import BasePermission

from apps.utils.exceptions import AuthorizationError
from .models import Role


class Action(models.TextChoices):
    CREATE_WORK_ORDER = "create-work-order", "Create work order"
    UPDATE_WORK_ORDER = "update-work-order", "Update work order"
    VIEW_WORK_ORDERS = "view-work-orders", "View all work orders"
    FILTER_WORK_ORDERS = "filter-work-orders", "Filter all work orders"
    ASSIGN_OPERATOR = "assign-operator", "Assign operator"
    VIEW_ASSIGNED_WORK_ORDERS = "view-assigned-work-orders", "View assigned work orders"
    UPDATE_WORK_ORDER_STATUS = "update-work-order-status", "Update work order status"


ROLE_PERMISSIONS = {
    Role.PRODUCTION_MANAGER: frozenset({
        Action.CREATE_WORK_ORDER,
        Action.UPDATE_WORK_ORDER,
        Action.VIEW_WORK_ORDERS,
        Action.FILTER_WORK_ORDERS,
        Action.ASSIGN_OPERATOR,
    }),
    Role.OPERATOR: frozenset({
        Action.VIEW_ASSIGNED_WORK_ORDERS,
        Action.UPDATE_WORK_ORDER_STATUS,
    }),
}


def permissions_for(user) -> frozenset:
    if user is None or not getattr(user, "is_authenticated", False):
        return frozenset()
    if not getattr(user, "is_active", False):
        return frozenset()
    return ROLE_PERMISSIONS.get(getattr(user, "role", None), frozenset())


def has_permission(user, action) -> bool:
    return action in permissions_for(user)


def require_permission(user, action, message=None):
    if not has_permission(user, action):
        if user is not None and getattr(user, "is_authenticated", False) and not user.role:
            raise AuthorizationError("Your account does not have a role assigned.")
        raise AuthorizationError(message) if message else AuthorizationError()


class HasAction(BasePermission):
    """
    DRF gate for a single action. Build one per action:

        permission_classes = [IsAuthenticated, HasAction.for_action(Action.ASSIGN_OPERATOR)]
    """
    action = None
    message = "You do not have permission to perform this action."

    def has_permission(self, request, view):
        return has_permission(request.user, self.action)

    @classmethod
    def for_action(cls, action):
        return type(f"HasAction_{action.name}", (cls,), {"action": action})


class HasAnyRole(BasePermission):
    """
    Authenticated and granted at least one action. Object-level rules live in the services.
    """
    message = "Your account does not have a role assigned."

    def has_permission(self, request, view):
        return bool(permissions_for(request.user))
