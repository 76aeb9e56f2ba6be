from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from apps.utils.models import TimestampedModel


class WorkOrderStatus(models.TextChoices):
    PENDING = "Pending", "Pending"
    IN_PROGRESS = "In Progress", "In Progress"
    COMPLETED = "Completed", "Completed"
    CANCELED = "Canceled", "Canceled"


class WorkOrder(TimestampedModel):
    """
    A unit of production work. `status` and `quantity` only change through
    apps.work_orders.services so every status change lands in the log.
    """
    Status = WorkOrderStatus

    number = models.CharField(max_length=32, unique=True, editable=False)  # WO-YYYYMMDD-NNN
    product_name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField()
    deadline = models.DateField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)

    operator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="assigned_work_orders",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_work_orders",
        editable=False,
    )

    # Optimistic concurrency token, bumped on every write
    version = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "work_orders"
        ordering = ["-created_at", "-number"]

    def __str__(self):
        return f"{self.number} [{self.status}]"


class WorkOrderLog(models.Model):
    """
    Append-only status history. Rows are written by apps.work_orders.audit
    in the same transaction as the status change they record.
    """
    id = models.BigAutoField(primary_key=True)
    work_order = models.ForeignKey(WorkOrder, related_name="status_logs", on_delete=models.CASCADE)

    previous_status = models.CharField(max_length=20, choices=WorkOrderStatus.choices, null=True, blank=True)
    new_status = models.CharField(max_length=20, choices=WorkOrderStatus.choices)
    notes = models.TextField(null=True, blank=True)

    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="work_order_logs",
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "work_order_logs"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.work_order_id}: {self.previous_status} -> {self.new_status}"

    def save(self, *args, **kwargs):
        if self.pk is not None and not self._state.adding:
            raise ValidationError("Status log entries are immutable.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Status log entries cannot be deleted.")


class WorkOrderSequence(models.Model):
    """
    Last issued work-order sequence number per calendar day.
    """
    day = models.DateField(unique=True)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "work_order_sequences"

    def __str__(self):
        return f"{self.day:%Y%m%d}: {self.last_value}"
