"""
URL routing for issuance API endpoints.
"""
from django.urls import path
from . import views

app_name = 'issuance'

urlpatterns = [
    path('issuances/', views.IssuanceRecordListView.as_view(), name='record-list'),
    path('issuances/recent/', views.RecentMovementsView.as_view(), name='recent-movements'),
    path('issuances/<int:pk>/', views.IssuanceRecordDetailView.as_view(), name='record-detail'),
]
