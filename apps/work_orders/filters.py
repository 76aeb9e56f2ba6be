import django_filters
from django.db.models import Q

from .models import WorkOrder, WorkOrderStatus


class WorkOrderFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method="filter_search")
    status = django_filters.ChoiceFilter(choices=WorkOrderStatus.choices)
    from_date = django_filters.DateFilter(field_name="deadline", lookup_expr="gte")
    to_date = django_filters.DateFilter(field_name="deadline", lookup_expr="lte")

    class Meta:
        model = WorkOrder
        fields = ["status"]

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(Q(number__icontains=value) | Q(product_name__icontains=value))
