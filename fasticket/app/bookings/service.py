"""Booking creation and cancellation.

All booking paths go through these functions so available_capacity stays in
step with confirmed bookings: creation decrements it with a single conditional
UPDATE, cancellation gives the seats back.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError

from .. import db
from ..models import Booking, BookingStatus, Event, EventStatus, Profile, generate_booking_code


class BookingError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EventNotFound(BookingError):
    status_code = 404


class EventNotBookable(BookingError):
    pass


class SoldOutError(BookingError):
    pass


class InsufficientCapacity(BookingError):
    pass


class DuplicateBooking(BookingError):
    pass


class InvalidQuantity(BookingError):
    pass


class BookingNotFound(BookingError):
    status_code = 404


class AlreadyCancelled(BookingError):
    pass


class CapacityBelowSold(BookingError):
    def __init__(self, sold: int):
        super().__init__(f"Capacity cannot be lower than the {sold} tickets already sold")
        self.sold = sold


BOOKING_INSERT_ATTEMPTS = 3


def _unused_booking_code(attempts: int = 5) -> str:
    for _ in range(attempts):
        code = generate_booking_code()
        if not db.session.query(Booking.id).filter_by(booking_code=code).first():
            return code
    raise RuntimeError("Could not generate a unique booking code")


def find_confirmed_booking(event_id: int, user_id: int) -> "Booking | None":
    return Booking.query.filter_by(
        event_id=event_id, user_id=user_id, status=BookingStatus.CONFIRMED.value
    ).first()


def create_booking(user: Profile, event_id: int, quantity: int = 1) -> Booking:
    """Book `quantity` seats of a published event for `user`.

    Raises a BookingError subclass describing why the booking was refused.
    A booking code taken between the check and the insert is retried with a
    fresh code. Other store errors propagate to the caller.
    """
    max_per_booking = current_app.config.get("MAX_TICKETS_PER_BOOKING", 10)
    if quantity < 1 or quantity > max_per_booking:
        raise InvalidQuantity(f"Quantity must be between 1 and {max_per_booking}")

    event = db.session.get(Event, event_id)
    if event is None:
        raise EventNotFound("Event not found")
    if event.status != EventStatus.PUBLISHED.value:
        raise EventNotBookable("Event is not available for booking")
    if event.available_capacity <= 0:
        raise SoldOutError("Event is sold out")
    if event.available_capacity < quantity:
        raise InsufficientCapacity(f"Only {event.available_capacity} seats left")
    if find_confirmed_booking(event.id, user.id):
        raise DuplicateBooking("You already have a booking for this event")

    event_id, user_id = event.id, user.id
    total_price = Decimal("0") if event.is_free else Decimal(event.ticket_price or 0) * quantity

    for _ in range(BOOKING_INSERT_ATTEMPTS):
        # Check and decrement in one statement; a concurrent booking that took
        # the last seats leaves rowcount at 0.
        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .where(Event.status == EventStatus.PUBLISHED.value)
            .where(Event.available_capacity >= quantity)
            .values(available_capacity=Event.available_capacity - quantity)
            .execution_options(synchronize_session=False)
        )
        res = db.session.execute(stmt)
        if res.rowcount != 1:
            db.session.rollback()
            raise SoldOutError("Event is sold out")

        booking = Booking(
            event_id=event_id,
            user_id=user_id,
            quantity=quantity,
            total_price=total_price,
            status=BookingStatus.CONFIRMED.value,
            booking_code=_unused_booking_code(),
        )
        db.session.add(booking)
        try:
            db.session.commit()
        except IntegrityError:
            # rollback also undoes the decrement above
            db.session.rollback()
            if find_confirmed_booking(event_id, user_id):
                raise DuplicateBooking("You already have a booking for this event")
            # otherwise another booking took the same code in the meantime
            current_app.logger.warning("Booking code %s collided, retrying", booking.booking_code)
            continue
        current_app.logger.info(
            "Booking %s confirmed: event=%s user=%s quantity=%s", booking.booking_code, event_id, user_id, quantity
        )
        return booking
    raise RuntimeError("Could not generate a unique booking code")


def resize_capacity(event: Event, new_total: int) -> None:
    """Set total_capacity and shift available_capacity by the same delta.

    One conditional UPDATE, so seats sold by bookings committed after `event`
    was loaded are kept. Raises CapacityBelowSold when `new_total` is below the
    seats sold at that moment. The caller commits.
    """
    sold_now = Event.total_capacity - Event.available_capacity
    res = db.session.execute(
        update(Event)
        .where(Event.id == event.id)
        .where(sold_now <= new_total)
        .values(available_capacity=Event.available_capacity + (new_total - Event.total_capacity), total_capacity=new_total)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        sold = db.session.query(sold_now).filter(Event.id == event.id).scalar()
        raise CapacityBelowSold(sold)
    # the row changed underneath the loaded object
    db.session.expire(event, ["total_capacity", "available_capacity"])


def cancel_booking(user: Profile, booking_id: int) -> Booking:
    """Cancel one of `user`'s bookings and release its seats."""
    booking = Booking.query.filter_by(id=booking_id, user_id=user.id).first()
    if booking is None:
        raise BookingNotFound("Booking not found")
    if booking.status == BookingStatus.CANCELLED.value:
        raise AlreadyCancelled("Booking is already cancelled")

    booking.status = BookingStatus.CANCELLED.value
    booking.cancelled_at = datetime.utcnow()
    restored = Event.available_capacity + booking.quantity
    db.session.execute(
        update(Event)
        .where(Event.id == booking.event_id)
        .values(available_capacity=case((restored > Event.total_capacity, Event.total_capacity), else_=restored))
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    current_app.logger.info("Booking %s cancelled by user %s", booking.booking_code, user.id)
    return booking
