"""
URL routing for the courses API.
"""

from django.urls import path
from .views import (
    ApplyDripView,
    AvailableSectionsView,
    CourseDetailView,
    CourseListCreateView,
    CourseSectionListCreateView,
    EnrollView,
    UnlockScheduleView,
)

urlpatterns = [
    path('', CourseListCreateView.as_view(), name='course-list-create'),
    path('<int:pk>/', CourseDetailView.as_view(), name='course-detail'),
    path('<int:pk>/sections/', CourseSectionListCreateView.as_view(), name='course-sections'),
    path('<int:pk>/unlock-schedule/', UnlockScheduleView.as_view(), name='course-unlock-schedule'),
    path('<int:pk>/apply-drip/', ApplyDripView.as_view(), name='course-apply-drip'),
    path('<int:pk>/enroll/', EnrollView.as_view(), name='course-enroll'),
    path('enrollments/<int:pk>/available-sections/', AvailableSectionsView.as_view(),
         name='enrollment-available-sections'),
]
