"""
URL routing for the bookings API.
"""

from django.urls import path
from .views import (
    BookingOccurrenceDetailView,
    BookingOccurrenceListView,
    OccurrenceCompleteView,
    PatternCancelFutureView,
    PatternGenerateView,
    PatternRescheduleView,
    RecurrencePatternDetailView,
    RecurrencePatternListCreateView,
)

urlpatterns = [
    path('patterns/', RecurrencePatternListCreateView.as_view(), name='pattern-list-create'),
    path('patterns/<int:pk>/', RecurrencePatternDetailView.as_view(), name='pattern-detail'),
    path('patterns/<int:pk>/generate/', PatternGenerateView.as_view(), name='pattern-generate'),
    path('patterns/<int:pk>/cancel-future/', PatternCancelFutureView.as_view(), name='pattern-cancel-future'),
    path('patterns/<int:pk>/reschedule/', PatternRescheduleView.as_view(), name='pattern-reschedule'),
    path('occurrences/', BookingOccurrenceListView.as_view(), name='occurrence-list'),
    path('occurrences/<int:pk>/', BookingOccurrenceDetailView.as_view(), name='occurrence-detail'),
    path('occurrences/<int:pk>/complete/', OccurrenceCompleteView.as_view(), name='occurrence-complete'),
]
