"""Room inventory and the booking lifecycle.

A room category has ``total_rooms`` units. Bookings in a holding status
(pending payment or confirmed) consume ``rooms_count`` units for every night
of their half-open ``[check_in, check_out)`` range. Everything that reads the
count and then writes a booking does so inside one transaction that holds a
lock on the room row, so two requests cannot both take the last units.
"""

import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.db import DEFAULT_DB_ALIAS, transaction
from django.db.models import Sum
from django.utils import timezone

from .models import Booking, Room

logger = logging.getLogger(__name__)


class BookingError(Exception):
    """Base class for rejected booking operations."""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class InvalidRange(BookingError):
    pass


class NotFound(BookingError):
    status_code = 404


class InsufficientInventory(BookingError):
    def __init__(self, available_rooms):
        super().__init__(f"Only {available_rooms} room(s) available for selected dates")
        self.available_rooms = available_rooms


class Forbidden(BookingError):
    status_code = 403


class InvalidStateTransition(BookingError):
    pass


@dataclass(frozen=True)
class Availability:
    available: bool
    available_rooms: int
    total_rooms: int
    requested_rooms: int


def ensure_valid_range(check_in, check_out):
    if check_in >= check_out:
        raise InvalidRange("Check-out must be after check-in")


def nights_between(check_in, check_out):
    """Number of nights billed; a partial day counts as a full night."""
    return math.ceil((check_out - check_in) / timedelta(days=1))


def calculate_total_amount(price_per_night, rooms_count, nights):
    return Decimal(price_per_night) * rooms_count * nights


class AvailabilityEngine:
    """Availability checks and booking state changes against one database.

    ``using`` names the Django database alias every query and transaction
    goes through.
    """

    def __init__(self, using=DEFAULT_DB_ALIAS):
        self.using = using

    def overlapping_bookings(self, room, check_in, check_out):
        return Booking.objects.using(self.using).filter(
            room=room,
            status__in=Booking.HOLDING_STATUSES,
            check_in__lt=check_out,
            check_out__gt=check_in,
        )

    def booked_rooms(self, room, check_in, check_out):
        total = self.overlapping_bookings(room, check_in, check_out).aggregate(
            total=Sum('rooms_count')
        )['total']
        return total or 0

    def peak_booked_rooms(self, room, since):
        """Most units held on any single night from ``since`` onward."""
        bookings = Booking.objects.using(self.using).filter(
            room=room,
            status__in=Booking.HOLDING_STATUSES,
            check_out__gt=since,
        ).values_list('check_in', 'check_out', 'rooms_count')

        changes = {}
        for check_in, check_out, rooms_count in bookings:
            start = max(check_in, since)
            changes[start] = changes.get(start, 0) + rooms_count
            changes[check_out] = changes.get(check_out, 0) - rooms_count

        held = peak = 0
        for day in sorted(changes):
            held += changes[day]
            peak = max(peak, held)
        return peak

    def update_room(self, room_id, apply_changes, total_rooms=None):
        """Apply an admin edit to a room without dropping below booked inventory.

        ``apply_changes`` receives the locked room and returns the saved one.
        """
        with transaction.atomic(using=self.using):
            try:
                room = Room.objects.using(self.using).select_for_update().get(pk=room_id)
            except Room.DoesNotExist:
                raise NotFound("Room not found")
            if total_rooms is not None and total_rooms < room.total_rooms:
                held = self.peak_booked_rooms(room, timezone.localdate())
                if total_rooms < held:
                    logger.warning(
                        "Rejected inventory change for room %s: %s requested, %s booked",
                        room.pk, total_rooms, held,
                    )
                    raise BookingError(
                        f"Cannot reduce total rooms to {total_rooms}: {held} room(s) already booked"
                    )
            room = apply_changes(room)

        logger.info("Room %s updated", room.pk)
        return room

    def _get_room(self, hotel_id, room_id, lock=False):
        rooms = Room.objects.using(self.using)
        if lock:
            rooms = rooms.select_for_update()
        try:
            room = rooms.get(pk=room_id)
        except (Room.DoesNotExist, ValueError):
            raise NotFound("Room not found")
        if str(room.hotel_id) != str(hotel_id):
            raise NotFound("Room not found")
        return room

    def compute_availability(self, hotel_id, room_id, check_in, check_out, requested_rooms=1):
        ensure_valid_range(check_in, check_out)
        if requested_rooms < 1:
            raise BookingError("Requested rooms must be a positive integer")
        room = self._get_room(hotel_id, room_id)
        available_rooms = room.total_rooms - self.booked_rooms(room, check_in, check_out)
        return Availability(
            available=available_rooms >= requested_rooms,
            available_rooms=available_rooms,
            total_rooms=room.total_rooms,
            requested_rooms=requested_rooms,
        )

    def create_booking(self, user, hotel_id, room_id, check_in, check_out, guests, rooms_count):
        ensure_valid_range(check_in, check_out)

        with transaction.atomic(using=self.using):
            # Lock the room row so concurrent bookings for it queue up here
            room = self._get_room(hotel_id, room_id, lock=True)

            available_rooms = room.total_rooms - self.booked_rooms(room, check_in, check_out)
            if available_rooms < rooms_count:
                logger.warning(
                    "Rejected booking for room %s: requested %s, available %s (%s to %s)",
                    room.pk, rooms_count, available_rooms, check_in, check_out,
                )
                raise InsufficientInventory(available_rooms)

            nights = nights_between(check_in, check_out)
            booking = Booking.objects.using(self.using).create(
                user=user,
                hotel_id=room.hotel_id,
                room=room,
                check_in=check_in,
                check_out=check_out,
                guests=guests,
                rooms_count=rooms_count,
                total_amount=calculate_total_amount(room.price_per_night, rooms_count, nights),
                status=Booking.Status.PENDING_PAYMENT,
            )

        logger.info("Booking %s created for room %s by user %s", booking.pk, room.pk, user.pk)
        return booking

    def _get_booking_for_update(self, booking_id):
        try:
            return Booking.objects.using(self.using).select_for_update().get(pk=booking_id)
        except (Booking.DoesNotExist, ValueError):
            raise NotFound("Booking not found")

    def cancel_booking(self, booking_id, user):
        with transaction.atomic(using=self.using):
            booking = self._get_booking_for_update(booking_id)
            if booking.user_id != user.pk and not user.is_admin:
                raise Forbidden("Access denied")
            if booking.status == Booking.Status.CANCELLED:
                raise InvalidStateTransition("Booking is already cancelled")
            if booking.status == Booking.Status.COMPLETED:
                raise InvalidStateTransition("Cannot cancel completed booking")

            booking.status = Booking.Status.CANCELLED
            booking.save(update_fields=['status', 'updated_at'])

        logger.info("Booking %s cancelled by user %s", booking.pk, user.pk)
        return booking

    def transition_booking(self, booking_id, new_status):
        """Move a booking along its lifecycle on behalf of an admin."""
        if new_status not in Booking.Status.values:
            raise BookingError(f"Unknown booking status: {new_status}")

        with transaction.atomic(using=self.using):
            booking = self._get_booking_for_update(booking_id)
            if not booking.can_transition_to(new_status):
                raise InvalidStateTransition(
                    f"Cannot change booking status from {booking.status} to {new_status}"
                )
            previous = booking.status
            booking.status = new_status
            booking.save(update_fields=['status', 'updated_at'])

        logger.info("Booking %s moved from %s to %s", booking.pk, previous, new_status)
        return booking
