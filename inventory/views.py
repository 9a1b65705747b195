"""
Inventory API Views.

Implements:
- Category list/create/retrieve/delete
- Stock item CRUD with search, status and category filters
- Issue and restock actions on a single item
- Stock summary by derived status

Every write delegates to inventory.services / issuance.services with the
caller's Session, so the permission gate and quantity invariants apply.
"""
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.views import LedgerViewMixin
from issuance import services as issuance_services
from issuance.serializers import IssuanceResultSerializer
from . import services
from .models import StockItem
from .serializers import (
    CategoryCreateSerializer,
    CategorySerializer,
    IssueSerializer,
    RestockSerializer,
    StockItemCreateSerializer,
    StockItemSerializer,
    StockItemUpdateSerializer,
)


# =============================================================================
# Category Views
# =============================================================================

class CategoryListCreateView(LedgerViewMixin, generics.ListCreateAPIView):
    """
    GET: List all categories
    POST: Create a new category (storekeeper only)
    """
    serializer_class = CategorySerializer

    def get_queryset(self):
        return services.list_categories()

    def create(self, request, *args, **kwargs):
        serializer = CategoryCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        category = services.add_category(
            self.get_session(),
            serializer.validated_data['name'],
            color=serializer.validated_data.get('color'),
        )
        return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)


class CategoryDetailView(LedgerViewMixin, generics.RetrieveDestroyAPIView):
    """
    GET: Retrieve a category
    DELETE: Delete a category; its items keep a dangling reference
    """
    serializer_class = CategorySerializer

    def get_queryset(self):
        return services.list_categories()

    def destroy(self, request, *args, **kwargs):
        services.delete_category(self.get_session(), kwargs['pk'])
        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Stock Item Views
# =============================================================================

class StockItemListCreateView(LedgerViewMixin, generics.ListCreateAPIView):
    """
    GET: List items with derived status
    POST: Create an item (storekeeper only)

    Query Parameters:
        - q: Substring of the item name
        - status: in_stock, low_stock or out_of_stock
        - category_id: Filter by category
    """
    serializer_class = StockItemSerializer

    def get_queryset(self):
        params = self.request.query_params
        category_id = params.get('category_id', '')
        return services.list_items(
            search=params.get('q', '').strip() or None,
            status=params.get('status', '').strip() or None,
            category_id=int(category_id) if category_id.isdigit() else None,
        ).select_related('category')

    def create(self, request, *args, **kwargs):
        serializer = StockItemCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        item = services.add_item(
            self.get_session(),
            data['name'],
            category_id=data.get('category_id'),
            initial_quantity=data['initial_quantity'],
        )
        return Response(StockItemSerializer(item).data, status=status.HTTP_201_CREATED)


class StockItemDetailView(LedgerViewMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve an item
    PATCH: Overwrite name, category or quantities
    DELETE: Delete an item; issuance records are kept
    """
    serializer_class = StockItemSerializer
    http_method_names = ['get', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        return StockItem.objects.select_related('category')

    def update(self, request, *args, **kwargs):
        serializer = StockItemUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        item = services.update_item(self.get_session(), kwargs['pk'], **serializer.validated_data)
        return Response(StockItemSerializer(item).data)

    def destroy(self, request, *args, **kwargs):
        services.delete_item(self.get_session(), kwargs['pk'])
        return Response(status=status.HTTP_204_NO_CONTENT)


class StockItemIssueView(LedgerViewMixin, APIView):
    """
    POST: Issue units of an item.

    Request Body:
    {"recipient_name": "John Doe", "quantity": 3, "issue_date": "2024-01-01"}

    Returns 201 with the committed request, or an error body
    {"error": kind, "detail": message} with 400/403/404/409/503.
    """

    def post(self, request, pk):
        serializer = IssueSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        issuance = issuance_services.issue(
            self.get_session(),
            pk,
            data.get('recipient_name'),
            data['quantity'],
            issue_date=data.get('issue_date'),
        )
        result = IssuanceResultSerializer({
            'state': issuance.state,
            'item': issuance.item,
            'record': issuance.record,
        })
        return Response(result.data, status=status.HTTP_201_CREATED)


class StockItemRestockView(LedgerViewMixin, APIView):
    """
    POST: Add units to an item.

    Request Body:
    {"quantity": 15}
    """

    def post(self, request, pk):
        serializer = RestockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        item = issuance_services.restock(self.get_session(), pk, serializer.validated_data['quantity'])
        return Response(StockItemSerializer(item).data)


class StockSummaryView(APIView):
    """
    GET: Item counts per derived status.
    """

    def get(self, request):
        return Response(services.stock_summary())
