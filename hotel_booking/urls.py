from django.urls import path
from rest_framework.routers import DefaultRouter

from hotel_booking.views import (
    AdminBookingViewSet,
    AdminHotelViewSet,
    AdminRoomViewSet,
    AdminStatsView,
    BookingViewSet,
    HotelViewSet,
    LoginView,
    MeView,
    PasswordView,
    ProfileView,
    RefreshView,
    RegisterView,
)

router = DefaultRouter()
router.register(r'hotels', HotelViewSet, basename='hotel')
router.register(r'bookings', BookingViewSet, basename='booking')
router.register(r'admin/hotels', AdminHotelViewSet, basename='admin-hotel')
router.register(r'admin/rooms', AdminRoomViewSet, basename='admin-room')
router.register(r'admin/bookings', AdminBookingViewSet, basename='admin-booking')

urlpatterns = [
    path('auth/register/', RegisterView.as_view(), name='auth-register'),
    path('auth/login/', LoginView.as_view(), name='auth-login'),
    path('auth/refresh/', RefreshView.as_view(), name='auth-refresh'),
    path('auth/me/', MeView.as_view(), name='auth-me'),
    path('auth/profile/', ProfileView.as_view(), name='auth-profile'),
    path('auth/password/', PasswordView.as_view(), name='auth-password'),
    path('admin/stats/', AdminStatsView.as_view(), name='admin-stats'),
] + router.urls
