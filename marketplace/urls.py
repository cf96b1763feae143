"""
URL configuration for the marketplace project.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/courses/', include('courses.urls')),
    path('api/bookings/', include('bookings.urls')),
    path('api/orders/', include('orders.urls')),
]
