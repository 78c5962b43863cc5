"""
URL mappings for the scheduling API.

Paths carry no trailing slash.
"""
from django.urls import path, include

from .auth_views import login_view, jwt_refresh_view, jwt_logout_view
from .views import health
from .views.availability import availability, serial_policy_info
from .views.bookings import (
    bookings,
    my_bookings,
    cancel_my_booking,
    update_booking_status,
)
from .views.policies import (
    serial_policies,
    serial_policy_stats,
    policy_overrides,
    policy_override_detail,
)
from .views.schedules import schedules


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout'),
    # Availability
    path('api/availability', availability, name='availability'),
    path('api/serial-policy', serial_policy_info, name='serial_policy_info'),
    # Bookings
    path('api/bookings', bookings, name='bookings'),
    path('api/bookings/my', my_bookings, name='my_bookings'),
    path('api/bookings/<int:pk>/cancel', cancel_my_booking, name='booking_cancel'),
    path('api/bookings/<int:pk>/status', update_booking_status, name='booking_status'),
    # Serial policies and date overrides
    path('api/serial-policies', serial_policies, name='serial_policies'),
    path('api/serial-policies/<int:pk>/stats', serial_policy_stats, name='serial_policy_stats'),
    path('api/serial-policies/<int:pk>/overrides', policy_overrides, name='policy_overrides'),
    path('api/serial-policies/<int:pk>/overrides/<int:override_id>', policy_override_detail,
         name='policy_override_detail'),
    # Weekly chamber schedules
    path('api/schedules', schedules, name='schedules'),
]
