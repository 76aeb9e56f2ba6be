from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from apps.accounts.permissions import HasAnyRole
from apps.utils.pagination import StandardResultsSetPagination
from . import selectors
from .serializers import (
    StatusTransitionSerializer,
    WorkOrderCreateSerializer,
    WorkOrderDetailSerializer,
    WorkOrderSerializer,
    WorkOrderUpdateSerializer,
)
from .services import WorkOrderService


class WorkOrderViewSet(viewsets.ViewSet):
    """
    Thin HTTP wrapper: parses input, hands the acting user to the
    service/selector layer and serializes the result.
    """
    permission_classes = [IsAuthenticated, HasAnyRole]

    def list(self, request):
        queryset = selectors.filtered_work_orders(request.user, request.query_params)
        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(WorkOrderSerializer(page, many=True).data)

    def create(self, request):
        serializer = WorkOrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        work_order = WorkOrderService.create_work_order(actor=request.user, **serializer.validated_data)
        return Response(WorkOrderSerializer(work_order).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        work_order, logs = selectors.get_work_order(pk, request.user)
        serializer = WorkOrderDetailSerializer(work_order, context={"status_logs": logs})
        return Response(serializer.data)

    def update(self, request, pk=None, partial=False):
        serializer = WorkOrderUpdateSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        changes = dict(serializer.validated_data)
        expected_version = changes.pop("version", None)
        work_order = WorkOrderService.update_work_order(
            pk, request.user, changes, expected_version=expected_version
        )
        return Response(WorkOrderSerializer(work_order).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk, partial=True)

    def destroy(self, request, pk=None):
        """
        Cancels the work order; records are never deleted.
        """
        work_order = WorkOrderService.cancel_work_order(pk, request.user)
        return Response(WorkOrderSerializer(work_order).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="status", url_name="transition")
    def transition(self, request, pk=None):
        serializer = StatusTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        work_order = WorkOrderService.transition_status(
            pk,
            request.user,
            requested_status=data["status"],
            quantity_change=data["quantity_change"],
            notes=data.get("notes"),
            expected_version=data.get("version"),
        )
        return Response(WorkOrderSerializer(work_order).data)
