from django.conf import settings
from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """
    Fixed-size pages. Clients cannot widen the page with a query param.
    A page past the end (or a non-numeric one) is clamped like Paginator.get_page.
    """
    page_size = getattr(settings, "WORK_ORDER_PAGE_SIZE", 10)
    page_query_param = "page"
    page_size_query_param = None

    def paginate_queryset(self, queryset, request, view=None):
        self.request = request
        paginator = self.django_paginator_class(queryset, self.get_page_size(request))
        self.page = paginator.get_page(self.get_page_number(request, paginator))

        if paginator.num_pages > 1 and self.template is not None:
            self.display_page_controls = True
        return list(self.page)
