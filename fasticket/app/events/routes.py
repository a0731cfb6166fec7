from __future__ import annotations
import csv
import io
from datetime import datetime
from decimal import Decimal
from flask import Blueprint, Response, jsonify, request, current_app, abort
from flask_login import current_user
from flask_babel import gettext as _
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from .. import db
from ..forms import EventForm, EventStatusForm, EventUpdateForm
from ..models import Booking, BookingStatus, Event, EventStatus, Profile
from ..auth.permissions import can_view_event, event_manager_required, organizer_required
from ..bookings.service import CapacityBelowSold, resize_capacity
from ..utils.dates import parse_iso8601
from ..utils.slugs import unique_slug

events_bp = Blueprint("events", __name__, url_prefix="/api")

TIME_FILTERS = ("upcoming", "ongoing", "past", "all")
SORT_COLUMNS = {
    "start_date": Event.start_date,
    "created_at": Event.created_at,
    "title": Event.title,
    "available_capacity": Event.available_capacity,
}


@events_bp.route("/events", methods=["GET"])
def list_events():
    """Published events, filtered by time window and free-text search.

    Query params:
      - filter: upcoming (default), ongoing, past or all
      - search: substring of title, description or location
      - organization_id: optional organization id to filter
      - sort_by / order: column and direction (asc or desc)
      - limit / offset: paging
    """
    time_filter = request.args.get("filter", "upcoming")
    if time_filter not in TIME_FILTERS:
        abort(400, _("filter must be one of upcoming, ongoing, past, all"))
    sort_by = request.args.get("sort_by", "start_date")
    if sort_by not in SORT_COLUMNS:
        abort(400, _("Unsupported sort_by"))
    order = request.args.get("order", "desc" if time_filter == "past" else "asc")
    if order not in ("asc", "desc"):
        abort(400, _("order must be asc or desc"))
    page_size = current_app.config.get("EVENTS_PAGE_SIZE", 20)
    max_page_size = current_app.config.get("EVENTS_MAX_PAGE_SIZE", 100)
    limit = request.args.get("limit", page_size, type=int)
    offset = request.args.get("offset", 0, type=int)
    limit = max(1, min(limit, max_page_size))
    offset = max(0, offset)

    q = Event.query.filter(Event.status == EventStatus.PUBLISHED.value)
    now = datetime.utcnow()
    if time_filter == "upcoming":
        q = q.filter(Event.start_date > now)
    elif time_filter == "ongoing":
        q = q.filter(Event.start_date <= now, Event.end_date >= now)
    elif time_filter == "past":
        q = q.filter(Event.end_date < now)

    org_id = request.args.get("organization_id", type=int)
    if org_id:
        q = q.filter(Event.organization_id == org_id)
    search = request.args.get("search", "", type=str).strip()
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Event.title.ilike(pattern), Event.description.ilike(pattern), Event.location.ilike(pattern)))

    total = q.count()
    column = SORT_COLUMNS[sort_by]
    q = q.order_by(column.asc() if order == "asc" else column.desc(), Event.id.asc())
    events = q.offset(offset).limit(limit).all()
    return jsonify({"events": [e.to_dict() for e in events], "total": total, "limit": limit, "offset": offset})


def _visible_event_or_404(event: "Event | None") -> Event:
    if event is None or not can_view_event(current_user, event):
        abort(404, _("Event not found"))
    return event


@events_bp.route("/events/<int:event_id>", methods=["GET"])
def get_event(event_id: int):
    event = _visible_event_or_404(db.session.get(Event, event_id))
    return jsonify(event.to_dict())


@events_bp.route("/events/<slug>", methods=["GET"])
def get_event_by_slug(slug: str):
    event = _visible_event_or_404(Event.query.filter_by(slug=slug).first())
    return jsonify(event.to_dict())


def _price(form) -> Decimal:
    return form.ticket_price.data if form.ticket_price.data is not None else Decimal("0")


@events_bp.route("/organizations/<int:org_id>/events", methods=["POST"])
@organizer_required
def create_event(org_id: int):
    form = EventForm.from_json()
    if not form.validate():
        abort(400, form.first_error())

    price = _price(form)
    is_free = form.is_free.data if "is_free" in form.provided else price == 0
    if not is_free and price <= 0:
        abort(400, _("Paid events need a ticket price above zero"))
    event = Event(
        organization_id=org_id,
        title=form.title.data.strip(),
        slug=unique_slug(Event, form.title.data, fallback="event"),
        description=form.description.data,
        cover_image_url=form.cover_image_url.data,
        location=form.location.data,
        venue_name=form.venue_name.data,
        start_date=parse_iso8601(form.start_date.data),
        end_date=parse_iso8601(form.end_date.data),
        ticket_price=Decimal("0") if is_free else price,
        is_free=is_free,
        total_capacity=form.total_capacity.data,
        available_capacity=form.total_capacity.data,
        status=form.status.data or EventStatus.DRAFT.value,
        created_by=current_user.id,
    )
    try:
        db.session.add(event)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Event create failed")
        abort(500, _("Failed to create event"))
    current_app.logger.info("Event %s created in organization %s", event.slug, org_id)
    return jsonify(event.to_dict()), 201


@events_bp.route("/events/<int:event_id>", methods=["PATCH"])
@event_manager_required
def update_event(event_id: int):
    event = db.session.get(Event, event_id)
    form = EventUpdateForm.from_json()
    if not form.validate():
        abort(400, form.first_error())

    if "title" in form.provided:
        if not form.title.data:
            abort(400, _("Title is required"))
        event.title = form.title.data.strip()
    for field in ("description", "cover_image_url", "location", "venue_name"):
        if field in form.provided:
            setattr(event, field, form[field].data or None)

    start = parse_iso8601(form.start_date.data) if form.start_date.data else event.start_date
    end = parse_iso8601(form.end_date.data) if form.end_date.data else event.end_date
    if end <= start:
        abort(400, _("End date must be after the start date"))
    event.start_date, event.end_date = start, end

    if "ticket_price" in form.provided:
        event.ticket_price = _price(form)
    if "is_free" in form.provided:
        event.is_free = form.is_free.data
    if event.is_free:
        event.ticket_price = Decimal("0")
    elif not event.ticket_price or event.ticket_price <= 0:
        abort(400, _("Paid events need a ticket price above zero"))

    if "status" in form.provided and form.status.data:
        _apply_status(event, form.status.data)

    try:
        if "total_capacity" in form.provided and form.total_capacity.data is not None:
            resize_capacity(event, form.total_capacity.data)
        db.session.commit()
    except CapacityBelowSold as exc:
        db.session.rollback()
        abort(400, _("Capacity cannot be lower than the %(sold)s tickets already sold", sold=exc.sold))
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Event update failed")
        abort(500, _("Failed to update event"))
    return jsonify(event.to_dict())


def _apply_status(event: Event, new_status: str) -> None:
    current, target = EventStatus(event.status), EventStatus(new_status)
    if not current.can_transition_to(target):
        abort(400, _("Cannot change status from %(current)s to %(target)s", current=current.value, target=target.value))
    event.status = target.value


@events_bp.route("/events/<int:event_id>/status", methods=["PATCH"])
@event_manager_required
def update_event_status(event_id: int):
    event = db.session.get(Event, event_id)
    form = EventStatusForm.from_json()
    if not form.validate():
        abort(400, form.first_error())
    previous = event.status
    _apply_status(event, form.status.data)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Event status update failed")
        abort(500, _("Failed to update event"))
    if previous != event.status:
        current_app.logger.info("Event %s status %s -> %s", event.id, previous, event.status)
    return jsonify(event.to_dict())


@events_bp.route("/events/<int:event_id>", methods=["DELETE"])
@event_manager_required
def delete_event(event_id: int):
    event = db.session.get(Event, event_id)
    try:
        db.session.delete(event)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Event delete failed")
        abort(500, _("Failed to delete event"))
    current_app.logger.info("Event %s deleted by %s", event_id, current_user.id)
    return jsonify({"success": True})


CSV_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def _csv_cell(value: "str | None") -> str:
    # spreadsheets evaluate cells starting with these as formulas
    value = value or ""
    return f"'{value}" if value.startswith(CSV_FORMULA_PREFIXES) else value


@events_bp.route("/events/<int:event_id>/bookings", methods=["GET"])
@event_manager_required
def event_bookings(event_id: int):
    q = Booking.query.join(Profile, Profile.id == Booking.user_id).filter(Booking.event_id == event_id)
    search = request.args.get("search", "", type=str).strip()
    if search:
        pattern = f"%{search}%"
        q = q.filter(
            or_(Booking.booking_code.ilike(pattern), Profile.fullname.ilike(pattern), Profile.email.ilike(pattern))
        )
    status = request.args.get("status")
    if status:
        if status not in [s.value for s in BookingStatus]:
            abort(400, _("Invalid status"))
        q = q.filter(Booking.status == status)
    bookings = q.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    if request.args.get("format") == "csv":
        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(["booking_code", "fullname", "email", "quantity", "total_price", "status", "created_at"])
        for b in bookings:
            writer.writerow(
                [b.booking_code, _csv_cell(b.profile.fullname), _csv_cell(b.profile.email), b.quantity, f"{b.total_price:.2f}", b.status, b.created_at.isoformat()]
            )
        return Response(
            buf.getvalue(),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename=bookings-{event_id}.csv"},
        )
    return jsonify([b.to_dict(with_profile=True) for b in bookings])


@events_bp.route("/events/<int:event_id>/stats", methods=["GET"])
@event_manager_required
def event_stats(event_id: int):
    event = db.session.get(Event, event_id)
    rows = (
        db.session.query(Booking.status, func.count(Booking.id), func.coalesce(func.sum(Booking.total_price), 0))
        .filter(Booking.event_id == event.id)
        .group_by(Booking.status)
        .all()
    )
    counts = {status: (count, revenue) for status, count, revenue in rows}
    confirmed_count, revenue = counts.get(BookingStatus.CONFIRMED.value, (0, 0))
    cancelled_count, _cancelled_revenue = counts.get(BookingStatus.CANCELLED.value, (0, 0))
    return jsonify({
        "event_id": event.id,
        "total_capacity": event.total_capacity,
        "available_capacity": event.available_capacity,
        "sold_capacity": event.sold_capacity,
        "booked_percentage": event.booked_percentage,
        "confirmed_bookings": int(confirmed_count),
        "cancelled_bookings": int(cancelled_count),
        "revenue": float(revenue or 0),
    })
