from django.contrib import admin
from .models import WorkOrder, WorkOrderLog, WorkOrderSequence


class WorkOrderLogInline(admin.TabularInline):
    model = WorkOrderLog
    extra = 0
    readonly_fields = ('created_at', 'previous_status', 'new_status', 'notes', 'changed_by')
    ordering = ('-created_at', '-id')

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(WorkOrder)
class WorkOrderAdmin(admin.ModelAdmin):
    """
    Read-only: edits must go through WorkOrderService so they are logged.
    """
    list_display = ('number', 'product_name', 'quantity', 'deadline', 'status', 'operator', 'created_at')
    list_filter = ('status', 'deadline', 'created_at')
    search_fields = ('number', 'product_name', 'operator__username', 'operator__name')
    inlines = [WorkOrderLogInline]

    readonly_fields = (
        'id', 'number', 'product_name', 'quantity', 'deadline', 'status',
        'operator', 'created_by', 'version', 'created_at', 'updated_at',
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(WorkOrderSequence)
class WorkOrderSequenceAdmin(admin.ModelAdmin):
    list_display = ('day', 'last_value')
    readonly_fields = ('day', 'last_value')

    def has_add_permission(self, request):
        return False
