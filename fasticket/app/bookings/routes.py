from __future__ import annotations
from flask import Blueprint, jsonify, current_app, abort
from flask_login import login_required, current_user
from flask_babel import gettext as _
from sqlalchemy.exc import SQLAlchemyError
from .. import db
from ..forms import BookingForm
from ..models import Booking, Event
from ..auth.permissions import can_view_event
from .service import BookingError, cancel_booking, create_booking, find_confirmed_booking

bookings_bp = Blueprint("bookings", __name__, url_prefix="/api")


@bookings_bp.route("/bookings/create", methods=["POST"])
@login_required
def create():
    form = BookingForm.from_json()
    if not form.validate():
        abort(400, form.first_error())
    quantity = form.quantity.data if form.quantity.data is not None else 1
    try:
        booking = create_booking(current_user, form.event_id.data, quantity)
    except BookingError as exc:
        return jsonify({"error": _(exc.message)}), exc.status_code
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Booking error")
        return jsonify({"error": _("Failed to create booking")}), 500
    return jsonify({"success": True, "bookingCode": booking.booking_code, "booking": booking.to_dict()}), 201


@bookings_bp.route("/bookings", methods=["GET"])
@login_required
def my_bookings():
    bookings = (
        Booking.query.filter_by(user_id=current_user.id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .all()
    )
    return jsonify([b.to_dict(with_event=True) for b in bookings])


@bookings_bp.route("/bookings/<booking_code>", methods=["GET"])
@login_required
def my_ticket(booking_code: str):
    booking = Booking.query.filter_by(booking_code=booking_code.upper(), user_id=current_user.id).first()
    if booking is None:
        abort(404, _("Booking not found"))
    return jsonify(booking.to_dict(with_event=True))


@bookings_bp.route("/bookings/<int:booking_id>/cancel", methods=["POST"])
@login_required
def cancel(booking_id: int):
    try:
        booking = cancel_booking(current_user, booking_id)
    except BookingError as exc:
        return jsonify({"error": _(exc.message)}), exc.status_code
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Booking cancel failed")
        return jsonify({"error": _("Failed to cancel booking")}), 500
    return jsonify({"success": True, "booking": booking.to_dict()})


@bookings_bp.route("/events/<int:event_id>/my-booking", methods=["GET"])
@login_required
def my_booking_for_event(event_id: int):
    event = db.session.get(Event, event_id)
    if event is None or not can_view_event(current_user, event):
        abort(404, _("Event not found"))
    booking = find_confirmed_booking(event.id, current_user.id)
    return jsonify({"booked": booking is not None, "booking": booking.to_dict() if booking else None})
