"""
Status log: insert-only writes and read-only history queries.
"""
from .models import WorkOrderLog


def append(work_order, previous_status, new_status, changed_by, notes=None) -> WorkOrderLog:
    """
    Must run inside the transaction that changes `work_order.status`.
    """
    return WorkOrderLog.objects.create(
        work_order=work_order,
        previous_status=previous_status,
        new_status=new_status,
        notes=notes or None,
        changed_by=changed_by,
    )


def history(work_order_id):
    """Entries for one work order, most recent first."""
    return (
        WorkOrderLog.objects
        .filter(work_order_id=work_order_id)
        .select_related("changed_by")
        .order_by("-created_at", "-id")
    )


def latest_notes(work_order_id):
    return history(work_order_id).values_list("notes", flat=True).first()
