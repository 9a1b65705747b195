"""
URL routing for inventory API endpoints.
"""
from django.urls import path
from . import views

app_name = 'inventory'

urlpatterns = [
    # Categories
    path('categories/', views.CategoryListCreateView.as_view(), name='category-list'),
    path('categories/<int:pk>/', views.CategoryDetailView.as_view(), name='category-detail'),

    # Items
    path('items/', views.StockItemListCreateView.as_view(), name='item-list'),
    path('items/summary/', views.StockSummaryView.as_view(), name='item-summary'),
    path('items/<int:pk>/', views.StockItemDetailView.as_view(), name='item-detail'),
    path('items/<int:pk>/issue/', views.StockItemIssueView.as_view(), name='item-issue'),
    path('items/<int:pk>/restock/', views.StockItemRestockView.as_view(), name='item-restock'),
]
