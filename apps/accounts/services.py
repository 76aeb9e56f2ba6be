import logging
from django.db import transaction

from .models import User, Role
from .permissions import Action, require_permission

logger = logging.getLogger(__name__)


class AccountService:

    @staticmethod
    @transaction.atomic
    def register_user(username: str, name: str, role: str, password: str) -> User:
        """
        Creates a user holding exactly one role.
        """
        user = User.objects.create_user(
            username=username,
            password=password,
            name=name,
            role=Role(role),
        )
        logger.info("Registered %s as %s", user.username, user.role, extra={"user_id": user.pk})
        return user

    @staticmethod
    def list_operators(actor):
        """
        Operators that can be assigned to a work order.
        """
        require_permission(actor, Action.ASSIGN_OPERATOR)
        return User.objects.operators().order_by("name")
