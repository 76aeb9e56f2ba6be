from rest_framework import serializers

from apps.accounts.serializers import UserSummarySerializer
from . import audit
from .models import WorkOrder, WorkOrderLog, WorkOrderStatus


class WorkOrderLogSerializer(serializers.ModelSerializer):
    changed_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = WorkOrderLog
        fields = ['id', 'previous_status', 'new_status', 'notes', 'changed_by', 'created_at']


class WorkOrderSerializer(serializers.ModelSerializer):
    operator = UserSummarySerializer(read_only=True)
    created_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = WorkOrder
        fields = [
            'id', 'number', 'product_name', 'quantity', 'deadline', 'status',
            'operator', 'created_by', 'version', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class WorkOrderDetailSerializer(WorkOrderSerializer):
    """
    Order plus its status history (most recent first) and the latest notes.
    Expects `status_logs` in the serializer context.
    """
    status_logs = serializers.SerializerMethodField()
    latest_notes = serializers.SerializerMethodField()

    class Meta(WorkOrderSerializer.Meta):
        fields = WorkOrderSerializer.Meta.fields + ['status_logs', 'latest_notes']
        read_only_fields = fields

    def get_status_logs(self, obj):
        return WorkOrderLogSerializer(self.context.get('status_logs', []), many=True).data

    def get_latest_notes(self, obj):
        return audit.latest_notes(obj.pk)


class WorkOrderCreateSerializer(serializers.Serializer):
    """
    Shape checks only. Domain rules (operator role, permissions) are enforced by WorkOrderService.
    """
    product_name = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1)
    deadline = serializers.DateField()
    status = serializers.ChoiceField(choices=WorkOrderStatus.choices, default=WorkOrderStatus.PENDING)
    operator_id = serializers.UUIDField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class WorkOrderUpdateSerializer(WorkOrderCreateSerializer):
    """
    PUT requires every field, PATCH any subset. `version` enables stale-write detection.
    """
    status = serializers.ChoiceField(choices=WorkOrderStatus.choices)
    version = serializers.IntegerField(required=False, min_value=1)


class StatusTransitionSerializer(serializers.Serializer):
    """
    Shape only. Status and quantity values are checked by WorkOrderService
    after ownership, so a foreign or finished order answers 403 or 422 first.
    """
    status = serializers.CharField()
    quantity_change = serializers.IntegerField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    version = serializers.IntegerField(required=False)
