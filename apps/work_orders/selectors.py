"""
Read side: role-scoped work order queries. Nothing here writes.
"""
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.paginator import Paginator

from apps.accounts.permissions import Action, has_permission, require_permission
from apps.utils.exceptions import AuthorizationError, BusinessValidationError, NotFoundError
from apps.utils.validators import validate_date_range

from . import audit
from .filters import WorkOrderFilter
from .models import WorkOrder


def visible_work_orders(actor):
    """
    Managers see every order; operators only the ones assigned to them.
    """
    queryset = WorkOrder.objects.select_related("operator", "created_by")
    if has_permission(actor, Action.VIEW_WORK_ORDERS):
        return queryset
    if has_permission(actor, Action.VIEW_ASSIGNED_WORK_ORDERS):
        return queryset.filter(operator_id=actor.pk)
    require_permission(actor, Action.VIEW_ASSIGNED_WORK_ORDERS)  # raises


def filtered_work_orders(actor, filters=None):
    """
    Applies `search`, `status`, `from_date` and `to_date` on top of the
    actor's scope. Scope is applied first so no filter can widen it.
    """
    filterset = WorkOrderFilter(data=filters or {}, queryset=visible_work_orders(actor))
    if not filterset.is_valid():
        raise BusinessValidationError({
            field: [error["message"] for error in errors]
            for field, errors in filterset.errors.get_json_data().items()
        })

    cleaned = filterset.form.cleaned_data
    try:
        validate_date_range(cleaned.get("from_date"), cleaned.get("to_date"))
    except ValueError as exc:
        raise BusinessValidationError({"to_date": [str(exc)]})

    return filterset.qs.order_by("-created_at", "-number")


def list_work_orders(actor, filters=None, page=1):
    paginator = Paginator(
        filtered_work_orders(actor, filters),
        getattr(settings, "WORK_ORDER_PAGE_SIZE", 10),
    )
    return paginator.get_page(page)


def get_work_order(work_order_id, actor):
    """
    Returns (work_order, status logs most recent first).
    """
    try:
        work_order = WorkOrder.objects.select_related("operator", "created_by").get(pk=work_order_id)
    except (WorkOrder.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError("Work order not found.")

    if not has_permission(actor, Action.VIEW_WORK_ORDERS):
        require_permission(actor, Action.VIEW_ASSIGNED_WORK_ORDERS)
        if work_order.operator_id != actor.pk:
            raise AuthorizationError("You can only view work orders assigned to you.")

    return work_order, list(audit.history(work_order.pk))
