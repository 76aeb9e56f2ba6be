"""
Operator-driven status transitions.

Only the two forward steps below are legal for operators. Manager edits go
through services.update_work_order and are not checked against this graph.
"""
from .models import WorkOrderStatus

OPERATOR_TRANSITIONS = {
    WorkOrderStatus.PENDING: frozenset({WorkOrderStatus.IN_PROGRESS}),
    WorkOrderStatus.IN_PROGRESS: frozenset({WorkOrderStatus.COMPLETED}),
    WorkOrderStatus.COMPLETED: frozenset(),
    WorkOrderStatus.CANCELED: frozenset(),
}

TERMINAL_STATES = frozenset({WorkOrderStatus.COMPLETED, WorkOrderStatus.CANCELED})


def allowed_transitions(current_status) -> frozenset:
    return OPERATOR_TRANSITIONS.get(current_status, frozenset())


def is_terminal(status) -> bool:
    return status in TERMINAL_STATES


def can_transition(current_status, requested_status) -> bool:
    if is_terminal(current_status):
        return False
    return requested_status in allowed_transitions(current_status)
