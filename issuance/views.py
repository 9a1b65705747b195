"""
Issuance API Views.

Implements:
- GET /issuances/ - Issuance history, newest first
- GET/PATCH/DELETE /issuances/{id}/ - Retrieve, correct or delete a record
- GET /issuances/recent/ - Latest movements feed

Issuing itself lives on the item: POST /items/{id}/issue/.
"""
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.views import LedgerViewMixin
from . import services
from .models import IssuanceRecord
from .serializers import (
    IssuanceCorrectionSerializer,
    IssuanceRecordSerializer,
    MovementSerializer,
)

RECENT_DEFAULT_LIMIT = 10
RECENT_MAX_LIMIT = 100


class IssuanceRecordListView(generics.ListAPIView):
    """
    GET: List issuance records.

    Query Parameters:
        - recipient: Substring of the recipient name
        - item_id: Filter by item
    """
    serializer_class = IssuanceRecordSerializer

    def get_queryset(self):
        params = self.request.query_params
        item_id = params.get('item_id', '')
        return services.list_records(
            recipient=params.get('recipient', '').strip() or None,
            item_id=int(item_id) if item_id.isdigit() else None,
        )


class IssuanceRecordDetailView(LedgerViewMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a record
    PATCH: Correct recipient, quantity or date (stock is not recalculated)
    DELETE: Delete a record (stock is not recalculated)
    """
    serializer_class = IssuanceRecordSerializer
    http_method_names = ['get', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        return IssuanceRecord.objects.select_related('item__category')

    def update(self, request, *args, **kwargs):
        serializer = IssuanceCorrectionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        record = services.correct_record(self.get_session(), kwargs['pk'], **serializer.validated_data)
        return Response(IssuanceRecordSerializer(record).data)

    def destroy(self, request, *args, **kwargs):
        services.delete_record(self.get_session(), kwargs['pk'])
        return Response(status=status.HTTP_204_NO_CONTENT)


class RecentMovementsView(APIView):
    """
    GET: The latest issuances as a movement feed.

    Query Parameters:
        - limit: Number of movements (default 10, max 100)
    """

    def get(self, request):
        try:
            limit = int(request.query_params.get('limit', RECENT_DEFAULT_LIMIT))
        except ValueError:
            limit = RECENT_DEFAULT_LIMIT
        limit = max(1, min(limit, RECENT_MAX_LIMIT))

        movements = services.recent_movements(limit=limit)
        return Response(MovementSerializer(movements, many=True).data)
