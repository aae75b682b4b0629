from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, datetime, timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.db import connection
from django.test import TestCase, TransactionTestCase
from rest_framework import status
from rest_framework.test import APITestCase

from .models import Amenity, Booking, Hotel, Review, Room, User
from .services import (
    AvailabilityEngine,
    BookingError,
    Forbidden,
    InsufficientInventory,
    InvalidRange,
    InvalidStateTransition,
    NotFound,
    nights_between,
)


def make_user(email='guest@example.com', **extra):
    extra.setdefault('name', 'Test Guest')
    return User.objects.create_user(email=email, password='secret123', **extra)


def make_hotel(name='Seaside Inn', city='Lisbon', rating=0):
    return Hotel.objects.create(
        name=name,
        city=city,
        address='1 Harbour Road',
        description='Test hotel',
        rating=rating,
    )


def make_room(hotel, total_rooms=5, price='100.00', name='Standard'):
    return Room.objects.create(
        hotel=hotel,
        name=name,
        room_type='STANDARD',
        capacity=2,
        price_per_night=Decimal(price),
        total_rooms=total_rooms,
    )


def make_booking(user, room, check_in, check_out, rooms_count=1, status=Booking.Status.CONFIRMED):
    return Booking.objects.create(
        user=user,
        hotel=room.hotel,
        room=room,
        check_in=check_in,
        check_out=check_out,
        guests=rooms_count,
        rooms_count=rooms_count,
        total_amount=Decimal('0'),
        status=status,
    )


class AvailabilityEngineTestCase(TestCase):
    """Inventory counting over overlapping bookings"""

    def setUp(self):
        self.engine = AvailabilityEngine()
        self.user = make_user()
        self.hotel = make_hotel()
        self.room = make_room(self.hotel, total_rooms=5)
        self.first = make_booking(self.user, self.room, date(2024, 6, 1), date(2024, 6, 5), rooms_count=2)
        self.second = make_booking(self.user, self.room, date(2024, 6, 1), date(2024, 6, 5), rooms_count=3)

    def check(self, check_in, check_out, requested=1):
        return self.engine.compute_availability(self.hotel.id, self.room.id, check_in, check_out, requested)

    def test_fully_booked_range_is_unavailable(self):
        result = self.check(date(2024, 6, 2), date(2024, 6, 3))

        self.assertFalse(result.available)
        self.assertEqual(result.available_rooms, 0)
        self.assertEqual(result.total_rooms, 5)
        self.assertEqual(result.requested_rooms, 1)

    def test_cancelling_frees_rooms(self):
        self.engine.cancel_booking(self.second.id, self.user)

        result = self.check(date(2024, 6, 2), date(2024, 6, 3))

        self.assertTrue(result.available)
        self.assertEqual(result.available_rooms, 3)

    def test_back_to_back_ranges_do_not_overlap(self):
        """Half-open ranges: checkout day is free for the next check-in"""
        scenarios = [
            (date(2024, 6, 5), date(2024, 6, 7), 'starts on existing checkout'),
            (date(2024, 5, 28), date(2024, 6, 1), 'ends on existing check-in'),
        ]
        for check_in, check_out, description in scenarios:
            with self.subTest(scenario=description):
                result = self.check(check_in, check_out, requested=5)
                self.assertTrue(result.available)
                self.assertEqual(result.available_rooms, 5)

    def test_overlapping_ranges_count_against_inventory(self):
        scenarios = [
            (date(2024, 5, 30), date(2024, 6, 2), 'starts before and overlaps'),
            (date(2024, 6, 4), date(2024, 6, 8), 'starts during existing booking'),
            (date(2024, 6, 2), date(2024, 6, 3), 'completely within existing booking'),
            (date(2024, 5, 1), date(2024, 7, 1), 'completely encompasses existing booking'),
        ]
        for check_in, check_out, description in scenarios:
            with self.subTest(scenario=description):
                self.assertEqual(self.check(check_in, check_out).available_rooms, 0)

    def test_only_holding_statuses_consume_inventory(self):
        Booking.objects.filter(pk=self.first.pk).update(status=Booking.Status.COMPLETED)
        Booking.objects.filter(pk=self.second.pk).update(status=Booking.Status.PENDING_PAYMENT)

        result = self.check(date(2024, 6, 2), date(2024, 6, 3))

        self.assertEqual(result.available_rooms, 2)

    def test_invalid_range_rejected(self):
        for check_in, check_out in [(date(2024, 6, 3), date(2024, 6, 3)), (date(2024, 6, 4), date(2024, 6, 3))]:
            with self.subTest(check_in=check_in, check_out=check_out):
                with self.assertRaises(InvalidRange):
                    self.check(check_in, check_out)

    def test_room_must_belong_to_hotel(self):
        other_hotel = make_hotel(name='Elsewhere')

        with self.assertRaises(NotFound):
            self.engine.compute_availability(other_hotel.id, self.room.id, date(2024, 6, 2), date(2024, 6, 3))
        with self.assertRaises(NotFound):
            self.engine.compute_availability(self.hotel.id, 999999, date(2024, 6, 2), date(2024, 6, 3))

    def test_peak_booked_rooms(self):
        make_booking(self.user, self.room, date(2024, 6, 5), date(2024, 6, 8), rooms_count=4)
        make_booking(self.user, self.room, date(2024, 6, 3), date(2024, 6, 4), rooms_count=5,
                     status=Booking.Status.CANCELLED)
        scenarios = [
            (date(2024, 5, 1), 5, 'two bookings share every night'),
            (date(2024, 6, 5), 4, 'earlier bookings already checked out'),
            (date(2024, 6, 8), 0, 'nothing held after the last checkout'),
        ]
        for since, expected, description in scenarios:
            with self.subTest(scenario=description):
                self.assertEqual(self.engine.peak_booked_rooms(self.room, since), expected)

    def test_update_room_keeps_booked_inventory(self):
        Booking.objects.update(check_in=date.today(), check_out=date.today() + timedelta(days=2))

        with self.assertRaises(BookingError):
            self.engine.update_room(self.room.id, lambda room: room, total_rooms=4)

        def grow(room):
            room.total_rooms = 7
            room.save()
            return room

        self.assertEqual(self.engine.update_room(self.room.id, grow, total_rooms=7).total_rooms, 7)

    def test_availability_check_is_read_only(self):
        before = list(Booking.objects.values_list('id', 'status'))
        self.check(date(2024, 6, 2), date(2024, 6, 3))
        self.check(date(2024, 6, 2), date(2024, 6, 3))
        self.assertEqual(list(Booking.objects.values_list('id', 'status')), before)


class CreateBookingTestCase(TestCase):
    """Booking creation preconditions and pricing"""

    def setUp(self):
        self.engine = AvailabilityEngine()
        self.user = make_user()
        self.hotel = make_hotel()
        self.room = make_room(self.hotel, total_rooms=3, price='100.00')

    def book(self, rooms_count=1, check_in=date(2024, 1, 1), check_out=date(2024, 1, 4), hotel_id=None):
        return self.engine.create_booking(
            user=self.user,
            hotel_id=hotel_id or self.hotel.id,
            room_id=self.room.id,
            check_in=check_in,
            check_out=check_out,
            guests=2,
            rooms_count=rooms_count,
        )

    def test_total_amount_is_price_times_rooms_times_nights(self):
        booking = self.book(rooms_count=2)

        self.assertEqual(booking.total_amount, Decimal('600'))
        self.assertEqual(booking.status, Booking.Status.PENDING_PAYMENT)
        self.assertEqual(booking.hotel_id, self.hotel.id)

    def test_insufficient_inventory_reports_available_rooms(self):
        self.book(rooms_count=2)

        with self.assertRaises(InsufficientInventory) as ctx:
            self.book(rooms_count=2, check_in=date(2024, 1, 3), check_out=date(2024, 1, 6))

        self.assertEqual(ctx.exception.available_rooms, 1)
        self.assertIn('Only 1 room(s) available', ctx.exception.message)
        self.assertEqual(Booking.objects.count(), 1)

    def test_remaining_rooms_can_still_be_booked(self):
        self.book(rooms_count=2)
        self.book(rooms_count=1)

        self.assertEqual(Booking.objects.filter(room=self.room).count(), 2)

    def test_mismatched_hotel_is_not_found(self):
        other_hotel = make_hotel(name='Elsewhere')

        with self.assertRaises(NotFound):
            self.book(hotel_id=other_hotel.id)
        self.assertFalse(Booking.objects.exists())

    def test_invalid_range_rejected_before_lookup(self):
        with self.assertRaises(InvalidRange):
            self.book(check_in=date(2024, 1, 4), check_out=date(2024, 1, 4))

    def test_partial_day_counts_as_full_night(self):
        self.assertEqual(nights_between(date(2024, 1, 1), date(2024, 1, 4)), 3)
        self.assertEqual(nights_between(datetime(2024, 1, 1, 14), datetime(2024, 1, 2, 18)), 2)


class CancelBookingTestCase(TestCase):
    """Cancellation rules and state transitions"""

    def setUp(self):
        self.engine = AvailabilityEngine()
        self.owner = make_user()
        self.stranger = make_user(email='stranger@example.com')
        self.admin = make_user(email='admin@example.com', role=User.Role.ADMIN)
        self.room = make_room(make_hotel(), total_rooms=1)
        self.booking = make_booking(self.owner, self.room, date(2024, 3, 1), date(2024, 3, 3))

    def test_owner_can_cancel(self):
        booking = self.engine.cancel_booking(self.booking.id, self.owner)
        self.assertEqual(booking.status, Booking.Status.CANCELLED)

    def test_admin_can_cancel_any_booking(self):
        booking = self.engine.cancel_booking(self.booking.id, self.admin)
        self.assertEqual(booking.status, Booking.Status.CANCELLED)

    def test_other_user_is_forbidden(self):
        with self.assertRaises(Forbidden):
            self.engine.cancel_booking(self.booking.id, self.stranger)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CONFIRMED)

    def test_terminal_states_cannot_be_cancelled(self):
        for terminal in [Booking.Status.CANCELLED, Booking.Status.COMPLETED]:
            with self.subTest(status=terminal):
                Booking.objects.filter(pk=self.booking.pk).update(status=terminal)
                with self.assertRaises(InvalidStateTransition):
                    self.engine.cancel_booking(self.booking.id, self.owner)
                self.booking.refresh_from_db()
                self.assertEqual(self.booking.status, terminal)

    def test_missing_booking(self):
        with self.assertRaises(NotFound):
            self.engine.cancel_booking(999999, self.owner)

    def test_admin_transitions_follow_lifecycle(self):
        pending = make_booking(self.owner, self.room, date(2024, 4, 1), date(2024, 4, 2),
                               status=Booking.Status.PENDING_PAYMENT)

        self.assertEqual(self.engine.transition_booking(pending.id, Booking.Status.CONFIRMED).status,
                         Booking.Status.CONFIRMED)
        self.assertEqual(self.engine.transition_booking(pending.id, Booking.Status.COMPLETED).status,
                         Booking.Status.COMPLETED)
        with self.assertRaises(InvalidStateTransition):
            self.engine.transition_booking(pending.id, Booking.Status.CONFIRMED)


class RaceConditionTestCase(TransactionTestCase):
    """Concurrent bookings never exceed a room's inventory"""

    def setUp(self):
        self.hotel = make_hotel()
        self.room = make_room(self.hotel, total_rooms=2)
        self.users = [make_user(email=f'racer{i}@example.com') for i in range(6)]
        self.check_in = date.today() + timedelta(days=1)
        self.check_out = date.today() + timedelta(days=3)

    def test_concurrent_booking_attempts_race_condition(self):
        engine = AvailabilityEngine()

        def create_booking(user):
            try:
                engine.create_booking(
                    user=user,
                    hotel_id=self.hotel.id,
                    room_id=self.room.id,
                    check_in=self.check_in,
                    check_out=self.check_out,
                    guests=1,
                    rooms_count=1,
                )
                return True
            except InsufficientInventory:
                return False
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=len(self.users)) as executor:
            futures = [executor.submit(create_booking, user) for user in self.users]
            results = [future.result() for future in as_completed(futures)]

        self.assertEqual(results.count(True), 2)
        self.assertEqual(
            Booking.objects.filter(room=self.room, status__in=Booking.HOLDING_STATUSES).count(), 2
        )


class AvailabilityAPITestCase(APITestCase):
    """GET /api/hotels/<id>/availability/"""

    def setUp(self):
        self.user = make_user()
        self.hotel = make_hotel()
        self.room = make_room(self.hotel, total_rooms=5)
        make_booking(self.user, self.room, date(2024, 6, 1), date(2024, 6, 5), rooms_count=2)
        self.url = f'/api/hotels/{self.hotel.id}/availability/'

    def test_reports_inventory(self):
        response = self.client.get(self.url, {
            'checkIn': '2024-06-02', 'checkOut': '2024-06-03', 'roomId': self.room.id, 'rooms': 3,
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {
            'available': True, 'availableRooms': 3, 'totalRooms': 5, 'requestedRooms': 3,
        })

    def test_requested_rooms_default_to_one(self):
        response = self.client.get(self.url, {
            'checkIn': '2024-06-02', 'checkOut': '2024-06-03', 'roomId': self.room.id,
        })
        self.assertEqual(response.data['requestedRooms'], 1)

    def test_missing_parameters(self):
        for missing in ['checkIn', 'checkOut', 'roomId']:
            with self.subTest(missing=missing):
                params = {'checkIn': '2024-06-02', 'checkOut': '2024-06-03', 'roomId': self.room.id}
                params.pop(missing)
                response = self.client.get(self.url, params)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_check_out_must_follow_check_in(self):
        response = self.client.get(self.url, {
            'checkIn': '2024-06-03', 'checkOut': '2024-06-03', 'roomId': self.room.id,
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Check-out must be after check-in')

    def test_room_from_another_hotel(self):
        other = make_hotel(name='Elsewhere')
        response = self.client.get(f'/api/hotels/{other.id}/availability/', {
            'checkIn': '2024-06-02', 'checkOut': '2024-06-03', 'roomId': self.room.id,
        })
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Room not found')


class BookingAPITestCase(APITestCase):
    """Booking endpoints for signed-in guests"""

    def setUp(self):
        self.user = make_user()
        self.other = make_user(email='other@example.com')
        self.hotel = make_hotel()
        self.room = make_room(self.hotel, total_rooms=2, price='100.00')
        self.client.force_authenticate(self.user)

    def payload(self, **overrides):
        data = {
            'hotelId': self.hotel.id,
            'roomId': self.room.id,
            'checkIn': '2024-01-01',
            'checkOut': '2024-01-04',
            'guests': 2,
            'roomsCount': 2,
        }
        data.update(overrides)
        return data

    def test_create_booking(self):
        response = self.client.post('/api/bookings/', self.payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data['status'], Booking.Status.PENDING_PAYMENT)
        self.assertEqual(response.data['totalAmount'], Decimal('600'))
        self.assertEqual(response.data['hotel']['name'], self.hotel.name)
        self.assertEqual(Booking.objects.get().user, self.user)

    def test_requires_authentication(self):
        self.client.force_authenticate(None)
        response = self.client.post('/api/bookings/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_overbooking_rejected_without_insert(self):
        self.client.post('/api/bookings/', self.payload(roomsCount=1), format='json')

        response = self.client.post('/api/bookings/', self.payload(roomsCount=2), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Only 1 room(s) available for selected dates')
        self.assertEqual(Booking.objects.count(), 1)

    def test_invalid_payloads(self):
        scenarios = [
            (self.payload(checkOut='2024-01-01'), status.HTTP_400_BAD_REQUEST, 'same day checkout'),
            (self.payload(roomsCount=0), status.HTTP_400_BAD_REQUEST, 'zero rooms'),
            (self.payload(checkIn='not-a-date'), status.HTTP_400_BAD_REQUEST, 'bad date'),
            (self.payload(hotelId=self.hotel.id + 100), status.HTTP_404_NOT_FOUND, 'wrong hotel'),
        ]
        for data, expected, description in scenarios:
            with self.subTest(scenario=description):
                response = self.client.post('/api/bookings/', data, format='json')
                self.assertEqual(response.status_code, expected)
        self.assertFalse(Booking.objects.exists())

    def test_cancel_booking(self):
        booking = make_booking(self.user, self.room, date(2024, 2, 1), date(2024, 2, 3))

        response = self.client.patch(f'/api/bookings/{booking.id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Booking.Status.CANCELLED)

        response = self.client.patch(f'/api/bookings/{booking.id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Booking is already cancelled')

    def test_cancel_someone_elses_booking(self):
        booking = make_booking(self.other, self.room, date(2024, 2, 1), date(2024, 2, 3))

        response = self.client.patch(f'/api/bookings/{booking.id}/cancel/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.CONFIRMED)

    def test_cancel_missing_booking(self):
        response = self.client.patch('/api/bookings/999999/cancel/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_retrieve_only_own_booking(self):
        mine = make_booking(self.user, self.room, date(2024, 2, 1), date(2024, 2, 3))
        theirs = make_booking(self.other, self.room, date(2024, 2, 1), date(2024, 2, 3))

        self.assertEqual(self.client.get(f'/api/bookings/{mine.id}/').status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get(f'/api/bookings/{theirs.id}/').status_code, status.HTTP_403_FORBIDDEN)

    def test_my_bookings_are_grouped(self):
        today = date.today()
        upcoming = make_booking(self.user, self.room, today + timedelta(days=5), today + timedelta(days=7))
        past = make_booking(self.user, self.room, today - timedelta(days=7), today - timedelta(days=5),
                            status=Booking.Status.COMPLETED)
        cancelled = make_booking(self.user, self.room, today + timedelta(days=1), today + timedelta(days=2),
                                 status=Booking.Status.CANCELLED)
        pending = make_booking(self.user, self.room, today + timedelta(days=1), today + timedelta(days=2),
                               status=Booking.Status.PENDING_PAYMENT)
        make_booking(self.other, self.room, today + timedelta(days=5), today + timedelta(days=7))

        response = self.client.get('/api/bookings/my/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([b['id'] for b in response.data['upcoming']], [upcoming.id])
        self.assertEqual([b['id'] for b in response.data['past']], [past.id])
        self.assertEqual([b['id'] for b in response.data['cancelled']], [cancelled.id])
        self.assertEqual([b['id'] for b in response.data['pending']], [pending.id])


class AuthAPITestCase(APITestCase):
    """Registration, login and profile endpoints"""

    def register(self, email='new@example.com', password='secret123'):
        return self.client.post('/api/auth/register/', {
            'name': 'New Guest', 'email': email, 'password': password,
        }, format='json')

    def test_register_returns_tokens(self):
        response = self.register()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertIn('accessToken', response.data)
        self.assertIn('refreshToken', response.data)
        self.assertEqual(response.data['user']['role'], User.Role.USER)

    def test_duplicate_email(self):
        self.register()
        response = self.register()
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_short_password_rejected(self):
        response = self.register(password='123')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_and_use_access_token(self):
        self.register()
        response = self.client.post('/api/auth/login/', {
            'email': 'new@example.com', 'password': 'secret123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['accessToken']}")
        me = self.client.get('/api/auth/me/')
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data['email'], 'new@example.com')

    def test_login_failures(self):
        make_user(email='suspended@example.com', status=User.Status.SUSPENDED)
        make_user(email='active@example.com')
        scenarios = [
            ('missing@example.com', 'secret123', status.HTTP_401_UNAUTHORIZED),
            ('active@example.com', 'wrong-password', status.HTTP_401_UNAUTHORIZED),
            ('suspended@example.com', 'secret123', status.HTTP_403_FORBIDDEN),
        ]
        for email, password, expected in scenarios:
            with self.subTest(email=email):
                response = self.client.post('/api/auth/login/', {'email': email, 'password': password},
                                            format='json')
                self.assertEqual(response.status_code, expected)

    def test_refresh_token(self):
        tokens = self.register().data

        response = self.client.post('/api/auth/refresh/', {'refreshToken': tokens['refreshToken']},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('accessToken', response.data)

        response = self.client.post('/api/auth/refresh/', {'refreshToken': 'garbage'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_update_profile_and_password(self):
        user = make_user()
        self.client.force_authenticate(user)

        response = self.client.put('/api/auth/profile/', {'name': 'Renamed', 'phone': '555-0100'},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Renamed')

        response = self.client.put('/api/auth/password/', {
            'currentPassword': 'wrong', 'newPassword': 'another123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        response = self.client.put('/api/auth/password/', {
            'currentPassword': 'secret123', 'newPassword': 'another123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertTrue(user.check_password('another123'))


class HotelCatalogAPITestCase(APITestCase):
    """Hotel search, detail and reviews"""

    def setUp(self):
        self.wifi = Amenity.objects.create(name='WiFi')
        self.pool = Amenity.objects.create(name='Pool')

        self.lisbon = make_hotel(name='Lisbon Lodge', city='Lisbon', rating=4.5)
        self.lisbon.amenities.add(self.wifi)
        make_room(self.lisbon, price='80.00', name='Budget')
        make_room(self.lisbon, price='300.00', name='Penthouse')

        self.porto = make_hotel(name='Porto Palace', city='Porto', rating=3.9)
        self.porto.amenities.add(self.pool)
        make_room(self.porto, price='150.00')

        self.user = make_user()

    def test_list_is_paginated_and_sorted_by_rating(self):
        response = self.client.get('/api/hotels/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([h['id'] for h in response.data['results']], [self.lisbon.id, self.porto.id])
        self.assertEqual(response.data['pagination'], {'total': 2, 'page': 1, 'limit': 10, 'totalPages': 1})
        self.assertEqual(response.data['results'][0]['startingPrice'], Decimal('80.00'))
        self.assertEqual(response.data['results'][0]['amenities'], ['WiFi'])

    def test_filters(self):
        scenarios = [
            ({'city': 'lis'}, [self.lisbon.id]),
            ({'minRating': 4}, [self.lisbon.id]),
            ({'amenities': 'Pool,Spa'}, [self.porto.id]),
            ({'minPrice': 100, 'maxPrice': 200}, [self.porto.id]),
            ({'sortBy': 'price_asc'}, [self.lisbon.id, self.porto.id]),
            ({'sortBy': 'price_desc'}, [self.porto.id, self.lisbon.id]),
        ]
        for params, expected in scenarios:
            with self.subTest(params=params):
                response = self.client.get('/api/hotels/', params)
                self.assertEqual([h['id'] for h in response.data['results']], expected)

    def test_limit_parameter(self):
        response = self.client.get('/api/hotels/', {'limit': 1, 'page': 2})
        self.assertEqual([h['id'] for h in response.data['results']], [self.porto.id])
        self.assertEqual(response.data['pagination']['totalPages'], 2)

    def test_detail_includes_rooms(self):
        response = self.client.get(f'/api/hotels/{self.lisbon.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['rooms']), 2)
        self.assertEqual(response.data['reviewCount'], 0)
        self.assertEqual(self.client.get('/api/hotels/999999/').status_code, status.HTTP_404_NOT_FOUND)

    def test_rooms_endpoint(self):
        response = self.client.get(f'/api/hotels/{self.lisbon.id}/rooms/')
        self.assertEqual([r['name'] for r in response.data], ['Budget', 'Penthouse'])

    def test_review_requires_a_stay(self):
        self.client.force_authenticate(self.user)
        url = f'/api/hotels/{self.lisbon.id}/reviews/'

        response = self.client.post(url, {'rating': 5, 'comment': 'Lovely'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        make_booking(self.user, self.lisbon.rooms.first(), date(2024, 1, 1), date(2024, 1, 3),
                     status=Booking.Status.COMPLETED)
        response = self.client.post(url, {'rating': 3, 'comment': 'Fine'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.lisbon.refresh_from_db()
        self.assertEqual(self.lisbon.rating, 3)

        response = self.client.post(url, {'rating': 4}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Review.objects.count(), 1)

    def test_review_rating_bounds(self):
        self.client.force_authenticate(self.user)
        response = self.client.post(f'/api/hotels/{self.lisbon.id}/reviews/', {'rating': 6}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_reviews_is_public(self):
        Review.objects.create(user=self.user, hotel=self.porto, rating=4, comment='Good')
        response = self.client.get(f'/api/hotels/{self.porto.id}/reviews/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['results'][0]['user']['name'], self.user.name)


class AdminAPITestCase(APITestCase):
    """Admin console endpoints"""

    def setUp(self):
        self.admin = make_user(email='admin@example.com', role=User.Role.ADMIN)
        self.guest = make_user()
        self.hotel = make_hotel()
        self.room = make_room(self.hotel)
        self.client.force_authenticate(self.admin)

    def test_guests_are_kept_out(self):
        self.client.force_authenticate(self.guest)
        self.assertEqual(self.client.get('/api/admin/stats/').status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.get('/api/admin/bookings/').status_code, status.HTTP_403_FORBIDDEN)

    def test_create_hotel_with_amenities_and_room(self):
        response = self.client.post('/api/admin/hotels/', {
            'name': 'New Hotel',
            'city': 'Madrid',
            'address': 'Gran Via 1',
            'description': 'Central',
            'amenities': ['WiFi', 'Gym'],
            'images': ['https://example.com/a.jpg'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(sorted(response.data['amenities']), ['Gym', 'WiFi'])
        hotel_id = response.data['id']

        response = self.client.post(f'/api/admin/hotels/{hotel_id}/rooms/', {
            'name': 'Twin',
            'roomType': 'STANDARD',
            'capacity': 2,
            'pricePerNight': '90.00',
            'totalRooms': 4,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(Room.objects.filter(hotel_id=hotel_id).count(), 1)

    def test_room_inventory_must_be_positive(self):
        response = self.client.post(f'/api/admin/hotels/{self.hotel.id}/rooms/', {
            'name': 'Ghost', 'roomType': 'STANDARD', 'capacity': 2, 'pricePerNight': '90.00', 'totalRooms': 0,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_and_delete_room(self):
        response = self.client.patch(f'/api/admin/rooms/{self.room.id}/', {'totalRooms': 9}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.room.refresh_from_db()
        self.assertEqual(self.room.total_rooms, 9)

        response = self.client.delete(f'/api/admin/rooms/{self.room.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Room.objects.filter(pk=self.room.pk).exists())

    def test_cannot_shrink_room_below_booked_inventory(self):
        start = date.today() + timedelta(days=30)
        make_booking(self.guest, self.room, start, start + timedelta(days=4), rooms_count=4)
        make_booking(self.guest, self.room, date.today() - timedelta(days=10), date.today() - timedelta(days=8),
                     rooms_count=5)
        url = f'/api/admin/rooms/{self.room.id}/'

        response = self.client.patch(url, {'totalRooms': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('4 room(s) already booked', response.data['error'])
        self.room.refresh_from_db()
        self.assertEqual(self.room.total_rooms, 5)

        availability = self.client.get(f'/api/hotels/{self.hotel.id}/availability/', {
            'checkIn': start + timedelta(days=1), 'checkOut': start + timedelta(days=2), 'roomId': self.room.id,
        })
        self.assertEqual(availability.data['availableRooms'], 1)

        response = self.client.patch(url, {'totalRooms': 4}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['totalRooms'], 4)

    def test_booking_status_transitions(self):
        booking = make_booking(self.guest, self.room, date(2024, 5, 1), date(2024, 5, 3),
                               status=Booking.Status.PENDING_PAYMENT)
        url = f'/api/admin/bookings/{booking.id}/status/'

        response = self.client.patch(url, {'status': 'CONFIRMED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Booking.Status.CONFIRMED)

        self.client.patch(url, {'status': 'CANCELLED'}, format='json')
        response = self.client.patch(url, {'status': 'CONFIRMED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(url, {'status': 'REFUNDED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stats_and_booking_list(self):
        confirmed = make_booking(self.guest, self.room, date(2024, 5, 1), date(2024, 5, 3))
        Booking.objects.filter(pk=confirmed.pk).update(total_amount=Decimal('250.00'))
        make_booking(self.guest, self.room, date(2024, 5, 1), date(2024, 5, 3), status=Booking.Status.CANCELLED)

        stats = self.client.get('/api/admin/stats/').data
        self.assertEqual(stats['totalHotels'], 1)
        self.assertEqual(stats['totalBookings'], 2)
        self.assertEqual(stats['totalRevenue'], Decimal('250.00'))
        self.assertEqual(stats['totalUsers'], 1)

        response = self.client.get('/api/admin/bookings/', {'status': 'CANCELLED'})
        self.assertEqual(response.data['pagination']['total'], 1)
        self.assertEqual(response.data['results'][0]['user']['email'], self.guest.email)


class ServiceEndpointsTestCase(TestCase):
    def test_health_and_welcome(self):
        self.assertEqual(self.client.get('/health').json(), {'status': 'ok'})
        self.assertIn('message', self.client.get('/').json())


class PopulateDbCommandTestCase(TestCase):
    def test_seeding_is_idempotent(self):
        call_command('populate_db', stdout=StringIO())
        call_command('populate_db', stdout=StringIO())

        self.assertEqual(Hotel.objects.count(), 4)
        self.assertEqual(Room.objects.count(), 12)
        self.assertTrue(User.objects.get(email='admin@hotel.com').is_admin)
        self.assertFalse(User.objects.get(email='user@hotel.com').is_admin)
