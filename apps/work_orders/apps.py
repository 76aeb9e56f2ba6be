# apps/work_orders/apps.py

from django.apps import AppConfig


class WorkOrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.work_orders"
    verbose_name = "Work Orders"
