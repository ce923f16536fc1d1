"""
URL configuration for Salon Booking
"""
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('salon.urls')),
]
