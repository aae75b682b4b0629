import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.models import update_last_login
from django.db import transaction
from django.db.models import Avg, Count, F, Min, Sum
from django.http import JsonResponse
from django.utils import timezone
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import RefreshToken

from .filters import BookingFilterSet, HotelFilterSet
from .models import Booking, Hotel, Review, Room
from .permissions import IsAdmin, IsBookingOwnerOrAdmin
from .serializers import (
    AdminBookingSerializer,
    AvailabilityQuerySerializer,
    BookingCreateSerializer,
    BookingSerializer,
    BookingStatusSerializer,
    HotelDetailSerializer,
    HotelListSerializer,
    HotelWriteSerializer,
    LoginSerializer,
    PasswordChangeSerializer,
    ProfileSerializer,
    RefreshSerializer,
    RegisterSerializer,
    ReviewSerializer,
    RoomSerializer,
    UserSerializer,
)
from .services import AvailabilityEngine

logger = logging.getLogger(__name__)

User = get_user_model()

SORT_ORDERINGS = {
    'rating_desc': [F('rating').desc(), 'id'],
    'price_asc': [F('starting_price').asc(nulls_last=True), 'id'],
    'price_desc': [F('starting_price').desc(nulls_last=True), 'id'],
}


def welcome(request):
    return JsonResponse({"message": "Welcome to the Hotel Booking API"})


def health_check(request):
    return JsonResponse({"status": "ok"})


def catalog_queryset():
    return Hotel.objects.annotate(
        starting_price=Min('rooms__price_per_night'),
        review_count=Count('reviews', distinct=True),
    ).prefetch_related('amenities', 'images')


def _token_payload(user):
    refresh = RefreshToken.for_user(user)
    return {
        'user': UserSerializer(user).data,
        'accessToken': str(refresh.access_token),
        'refreshToken': str(refresh),
    }


# Auth

class RegisterView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if User.objects.filter(email__iexact=serializer.validated_data['email']).exists():
            return Response({'error': 'Email already registered'}, status=status.HTTP_409_CONFLICT)
        user = serializer.save()
        logger.info("Registered user %s", user.pk)
        return Response(_token_payload(user), status=status.HTTP_201_CREATED)


class LoginView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        credentials = serializer.validated_data

        user = User.objects.filter(email__iexact=credentials['email']).first()
        if user is None:
            return Response({'error': 'Invalid email or password'}, status=status.HTTP_401_UNAUTHORIZED)
        if user.status != User.Status.ACTIVE:
            return Response({'error': 'Account is not active'}, status=status.HTTP_403_FORBIDDEN)
        if not user.check_password(credentials['password']):
            return Response({'error': 'Invalid email or password'}, status=status.HTTP_401_UNAUTHORIZED)

        update_last_login(None, user)
        return Response(_token_payload(user))


class RefreshView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = RefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            refresh = RefreshToken(serializer.validated_data['refreshToken'])
        except TokenError:
            return Response({'error': 'Invalid or expired refresh token'}, status=status.HTTP_401_UNAUTHORIZED)

        user = User.objects.filter(pk=refresh.payload.get(jwt_settings.USER_ID_CLAIM)).first()
        if user is None or user.status != User.Status.ACTIVE:
            return Response({'error': 'User not found or inactive'}, status=status.HTTP_401_UNAUTHORIZED)
        return Response({'accessToken': str(refresh.access_token)})


class MeView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response(UserSerializer(request.user).data)


class ProfileView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def put(self, request):
        serializer = ProfileSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return Response(UserSerializer(user).data)


class PasswordView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def put(self, request):
        serializer = PasswordChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = request.user
        if not user.check_password(serializer.validated_data['currentPassword']):
            return Response({'error': 'Current password is incorrect'}, status=status.HTTP_401_UNAUTHORIZED)
        user.set_password(serializer.validated_data['newPassword'])
        user.save(update_fields=['password'])
        return Response({'message': 'Password updated successfully'})


# Catalog

class HotelViewSet(viewsets.ReadOnlyModelViewSet):
    permission_classes = [permissions.AllowAny]
    filterset_class = HotelFilterSet
    engine = AvailabilityEngine()

    def get_queryset(self):
        queryset = catalog_queryset()
        if self.action == 'retrieve':
            queryset = queryset.prefetch_related('rooms__images')
        sort_by = self.request.query_params.get('sortBy', 'rating_desc')
        return queryset.order_by(*SORT_ORDERINGS.get(sort_by, SORT_ORDERINGS['rating_desc']))

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return HotelDetailSerializer
        return HotelListSerializer

    @action(detail=True, methods=['get'])
    def availability(self, request, pk=None):
        """How many units of a room are free for a date range"""
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        result = self.engine.compute_availability(
            hotel_id=pk,
            room_id=params['roomId'],
            check_in=params['checkIn'],
            check_out=params['checkOut'],
            requested_rooms=params['rooms'],
        )
        return Response({
            'available': result.available,
            'availableRooms': result.available_rooms,
            'totalRooms': result.total_rooms,
            'requestedRooms': result.requested_rooms,
        })

    @action(detail=True, methods=['get'])
    def rooms(self, request, pk=None):
        hotel = self.get_object()
        rooms = hotel.rooms.prefetch_related('images').order_by('price_per_night', 'id')
        return Response(RoomSerializer(rooms, many=True).data)

    @action(detail=True, methods=['get', 'post'], permission_classes=[permissions.IsAuthenticatedOrReadOnly])
    def reviews(self, request, pk=None):
        """List a hotel's reviews, or post one after a stay"""
        if request.method == 'GET':
            hotel = self.get_object()
            page = self.paginate_queryset(hotel.reviews.select_related('user'))
            return self.get_paginated_response(ReviewSerializer(page, many=True).data)

        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        hotel = self.get_object()

        has_stay = Booking.objects.filter(
            user=request.user,
            hotel=hotel,
            status__in=[Booking.Status.COMPLETED, Booking.Status.CONFIRMED],
        ).exists()
        if not has_stay:
            return Response({'error': 'You can only review hotels you have booked'},
                            status=status.HTTP_403_FORBIDDEN)
        if Review.objects.filter(user=request.user, hotel=hotel).exists():
            return Response({'error': 'You have already reviewed this hotel'},
                            status=status.HTTP_400_BAD_REQUEST)

        with transaction.atomic():
            review = serializer.save(user=request.user, hotel=hotel)
            average = hotel.reviews.aggregate(avg=Avg('rating'))['avg']
            hotel.rating = round(average or 0, 2)
            hotel.save(update_fields=['rating', 'updated_at'])

        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)


# Bookings

class BookingViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = Booking.objects.select_related('hotel', 'room')
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated, IsBookingOwnerOrAdmin]
    engine = AvailabilityEngine()

    def create(self, request):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        booking = self.engine.create_booking(
            user=request.user,
            hotel_id=data['hotelId'],
            room_id=data['roomId'],
            check_in=data['checkIn'],
            check_out=data['checkOut'],
            guests=data['guests'],
            rooms_count=data['roomsCount'],
        )
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def my(self, request):
        """Current user's bookings grouped for the dashboard"""
        bookings = self.get_queryset().filter(user=request.user).order_by('-created_at')
        status_filter = request.query_params.get('status')
        if status_filter:
            bookings = bookings.filter(status=status_filter)

        today = timezone.localdate()
        bookings = list(bookings)
        groups = {
            'upcoming': [b for b in bookings if b.status == Booking.Status.CONFIRMED and b.check_in > today],
            'past': [b for b in bookings if b.status == Booking.Status.COMPLETED or b.check_out < today],
            'cancelled': [b for b in bookings if b.status == Booking.Status.CANCELLED],
            'pending': [b for b in bookings if b.status == Booking.Status.PENDING_PAYMENT],
        }
        return Response({key: BookingSerializer(items, many=True).data for key, items in groups.items()})

    @action(detail=True, methods=['patch'])
    def cancel(self, request, pk=None):
        booking = self.engine.cancel_booking(pk, request.user)
        return Response(BookingSerializer(booking).data)


# Admin console

class AdminStatsView(APIView):
    permission_classes = [IsAdmin]

    def get(self, request):
        revenue = Booking.objects.filter(status=Booking.Status.CONFIRMED).aggregate(
            total=Sum('total_amount')
        )['total']
        recent = Booking.objects.select_related('user', 'hotel', 'room').order_by('-created_at')[:10]
        return Response({
            'totalHotels': Hotel.objects.count(),
            'totalBookings': Booking.objects.count(),
            'totalRevenue': revenue or 0,
            'totalUsers': User.objects.filter(role=User.Role.USER).count(),
            'recentBookings': AdminBookingSerializer(recent, many=True).data,
        })


class AdminHotelViewSet(mixins.CreateModelMixin,
                        mixins.UpdateModelMixin,
                        mixins.DestroyModelMixin,
                        viewsets.GenericViewSet):
    queryset = Hotel.objects.prefetch_related('amenities', 'images')
    serializer_class = HotelWriteSerializer
    permission_classes = [IsAdmin]

    def perform_create(self, serializer):
        hotel = serializer.save()
        logger.info("Hotel %s created by admin %s", hotel.pk, self.request.user.pk)

    def perform_destroy(self, instance):
        logger.info("Hotel %s deleted by admin %s", instance.pk, self.request.user.pk)
        instance.delete()

    @action(detail=True, methods=['post'])
    def rooms(self, request, pk=None):
        """Add a room category to a hotel"""
        hotel = self.get_object()
        serializer = RoomSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        room = serializer.save(hotel=hotel)
        logger.info("Room %s added to hotel %s", room.pk, hotel.pk)
        return Response(RoomSerializer(room).data, status=status.HTTP_201_CREATED)


class AdminRoomViewSet(mixins.UpdateModelMixin,
                       mixins.DestroyModelMixin,
                       viewsets.GenericViewSet):
    queryset = Room.objects.prefetch_related('images')
    serializer_class = RoomSerializer
    permission_classes = [IsAdmin]
    engine = AvailabilityEngine()

    def perform_update(self, serializer):
        def save(room):
            serializer.instance = room
            return serializer.save()

        self.engine.update_room(
            serializer.instance.pk,
            save,
            total_rooms=serializer.validated_data.get('total_rooms'),
        )


class AdminBookingViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    queryset = Booking.objects.select_related('user', 'hotel', 'room').order_by('-created_at')
    serializer_class = AdminBookingSerializer
    permission_classes = [IsAdmin]
    filterset_class = BookingFilterSet
    engine = AvailabilityEngine()

    @action(detail=True, methods=['patch'], url_path='status', url_name='status')
    def update_status(self, request, pk=None):
        serializer = BookingStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = self.engine.transition_booking(pk, serializer.validated_data['status'])
        return Response(AdminBookingSerializer(booking).data)
