import datetime
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone
from django.utils.dateparse import parse_date

from apps.accounts.models import User, Role
from apps.accounts.permissions import Action, has_permission, require_permission
from apps.utils.exceptions import (
    AuthorizationError,
    BusinessValidationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)

from . import audit
from .models import WorkOrder, WorkOrderStatus
from .numbering import allocate_number
from .transitions import can_transition

logger = logging.getLogger(__name__)

CANCEL_NOTE = "Work order canceled by user"
EDITABLE_FIELDS = ("product_name", "quantity", "deadline", "operator_id", "status", "notes")


def _clean_product_name(value, errors):
    value = value.strip() if isinstance(value, str) else ""
    if not value:
        errors["product_name"] = ["Product name is required."]
    elif len(value) > 255:
        errors["product_name"] = ["Product name must be at most 255 characters."]
    return value


def _clean_quantity(value, errors, field="quantity", minimum=1):
    if isinstance(value, bool) or not isinstance(value, int):
        try:
            value = int(str(value))
        except (TypeError, ValueError):
            errors[field] = ["A whole number is required."]
            return None
    if value < minimum:
        errors[field] = [f"Must be at least {minimum}."]
    return value


def _clean_deadline(value, errors):
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        parsed = parse_date(str(value)) if value else None
    except ValueError:
        parsed = None
    if parsed is None:
        errors["deadline"] = ["A valid date (YYYY-MM-DD) is required."]
    return parsed


def _clean_status(value, errors, field="status"):
    if value not in WorkOrderStatus.values:
        errors[field] = [f"Must be one of: {', '.join(WorkOrderStatus.values)}."]
        return None
    return WorkOrderStatus(value)


def _resolve_operator(operator_id, errors):
    try:
        operator = User.objects.get(pk=operator_id, is_active=True)
    except (User.DoesNotExist, DjangoValidationError, ValueError, TypeError):
        errors["operator_id"] = ["Unknown operator."]
        return None
    if operator.role != Role.OPERATOR:
        errors["operator_id"] = ["Assigned user must have the Operator role."]
        return None
    return operator


def _get_for_update(work_order_id) -> WorkOrder:
    try:
        return WorkOrder.objects.select_for_update().get(pk=work_order_id)
    except (WorkOrder.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError("Work order not found.")


def _check_version(work_order, expected_version):
    if expected_version is None:
        return
    try:
        expected_version = int(expected_version)
    except (TypeError, ValueError):
        raise BusinessValidationError({"version": ["A whole number is required."]})
    if expected_version != work_order.version:
        raise ConflictError(
            f"Work order {work_order.number} was modified by someone else. Reload and try again."
        )


def _compare_and_set(work_order, **fields):
    """
    Write `fields` only if status and version are still what we read.
    """
    updated = (
        WorkOrder.objects
        .filter(pk=work_order.pk, status=work_order.status, version=work_order.version)
        .update(version=F("version") + 1, updated_at=timezone.now(), **fields)
    )
    if not updated:
        raise ConflictError(
            f"Work order {work_order.number} was modified by someone else. Reload and try again."
        )
    work_order.refresh_from_db()
    return work_order


class WorkOrderService:
    """
    Every write to a work order goes through here. Each method takes the
    acting user explicitly and raises apps.utils.exceptions errors.
    """

    @staticmethod
    @transaction.atomic
    def create_work_order(actor, product_name, quantity, deadline, operator_id,
                          status=WorkOrderStatus.PENDING, notes=None) -> WorkOrder:
        """
        Creates the order (in any of the four statuses) and its first log entry.
        """
        require_permission(actor, Action.CREATE_WORK_ORDER)

        errors = {}
        product_name = _clean_product_name(product_name, errors)
        quantity = _clean_quantity(quantity, errors)
        deadline = _clean_deadline(deadline, errors)
        status = _clean_status(status, errors)
        operator = _resolve_operator(operator_id, errors)
        if errors:
            raise BusinessValidationError(errors)

        work_order = WorkOrder.objects.create(
            number=allocate_number(),
            product_name=product_name,
            quantity=quantity,
            deadline=deadline,
            status=status,
            operator=operator,
            created_by=actor,
        )
        audit.append(work_order, None, status, changed_by=actor, notes=notes)

        logger.info(
            "Work order %s created (%s) for operator %s",
            work_order.number, status, operator.username,
            extra={"work_order_id": work_order.pk, "user_id": actor.pk},
        )
        return work_order

    @staticmethod
    @transaction.atomic
    def update_work_order(work_order_id, actor, changes: dict, expected_version=None) -> WorkOrder:
        """
        Production Manager edit. Any status may be set directly; the operator
        transition graph is deliberately not applied on this path.
        """
        require_permission(actor, Action.UPDATE_WORK_ORDER)

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise BusinessValidationError({field: ["This field cannot be edited."] for field in sorted(unknown)})

        work_order = _get_for_update(work_order_id)
        _check_version(work_order, expected_version)

        errors = {}
        fields = {}
        if "product_name" in changes:
            fields["product_name"] = _clean_product_name(changes["product_name"], errors)
        if "quantity" in changes:
            fields["quantity"] = _clean_quantity(changes["quantity"], errors)
        if "deadline" in changes:
            fields["deadline"] = _clean_deadline(changes["deadline"], errors)
        if "status" in changes:
            fields["status"] = _clean_status(changes["status"], errors)
        if "operator_id" in changes and str(changes["operator_id"]) != str(work_order.operator_id):
            require_permission(actor, Action.ASSIGN_OPERATOR)
            fields["operator"] = _resolve_operator(changes["operator_id"], errors)
        if errors:
            raise BusinessValidationError(errors)

        fields = {
            name: value for name, value in fields.items()
            if value != getattr(work_order, name)
        }
        if not fields:
            return work_order

        previous_status = work_order.status
        _compare_and_set(work_order, **fields)

        if "status" in fields:
            audit.append(
                work_order, previous_status, work_order.status,
                changed_by=actor, notes=changes.get("notes"),
            )
            logger.info(
                "Work order %s status set by manager: %s -> %s",
                work_order.number, previous_status, work_order.status,
                extra={"work_order_id": work_order.pk, "user_id": actor.pk},
            )
        return work_order

    @staticmethod
    @transaction.atomic
    def transition_status(work_order_id, actor, requested_status, quantity_change,
                          notes=None, expected_version=None) -> WorkOrder:
        """
        Operator-driven status change along the legal graph:
        Pending -> In Progress -> Completed.

        `quantity_change` replaces the stored quantity (it is not a delta).
        """
        work_order = _get_for_update(work_order_id)

        if not has_permission(actor, Action.UPDATE_WORK_ORDER_STATUS):
            logger.warning(
                "Status change on %s refused: missing permission",
                work_order.number, extra={"work_order_id": work_order.pk},
            )
            require_permission(actor, Action.UPDATE_WORK_ORDER_STATUS)
        if work_order.operator_id != actor.pk:
            logger.warning(
                "Status change on %s refused: not the assigned operator",
                work_order.number, extra={"work_order_id": work_order.pk, "user_id": actor.pk},
            )
            raise AuthorizationError("You can only update work orders assigned to you.")

        errors = {}
        requested = _clean_status(requested_status, errors)
        if errors:
            raise BusinessValidationError(errors)

        _check_version(work_order, expected_version)

        if not can_transition(work_order.status, requested):
            logger.warning(
                "Invalid transition on %s: %s -> %s",
                work_order.number, work_order.status, requested,
                extra={"work_order_id": work_order.pk, "user_id": actor.pk},
            )
            raise InvalidTransitionError(work_order.status, requested)

        quantity = _clean_quantity(quantity_change, errors, field="quantity_change", minimum=0)
        if errors:
            raise BusinessValidationError(errors)

        previous_status = work_order.status
        _compare_and_set(work_order, status=requested, quantity=quantity)
        audit.append(work_order, previous_status, requested, changed_by=actor, notes=notes)

        logger.info(
            "Work order %s: %s -> %s (quantity %s)",
            work_order.number, previous_status, requested, quantity,
            extra={"work_order_id": work_order.pk, "user_id": actor.pk},
        )
        return work_order

    @staticmethod
    @transaction.atomic
    def cancel_work_order(work_order_id, actor) -> WorkOrder:
        """
        Cancels from any status. The record is never deleted.
        """
        require_permission(actor, Action.UPDATE_WORK_ORDER)
        work_order = _get_for_update(work_order_id)

        if work_order.status == WorkOrderStatus.CANCELED:
            return work_order

        previous_status = work_order.status
        _compare_and_set(work_order, status=WorkOrderStatus.CANCELED)
        audit.append(
            work_order, previous_status, WorkOrderStatus.CANCELED,
            changed_by=actor, notes=CANCEL_NOTE,
        )

        logger.info(
            "Work order %s canceled (was %s)",
            work_order.number, previous_status,
            extra={"work_order_id": work_order.pk, "user_id": actor.pk},
        )
        return work_order
