from __future__ import annotations
import enum
import secrets
from datetime import datetime
from decimal import Decimal
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from . import db


class OrganizationRole(str, enum.Enum):
    ORGANIZER = "organizer"
    MEMBER = "member"


class EventStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "EventStatus") -> bool:
        if target == self:
            return True
        return target in EVENT_STATUS_TRANSITIONS[self]


# cancelled is terminal
EVENT_STATUS_TRANSITIONS: dict[EventStatus, frozenset[EventStatus]] = {
    EventStatus.DRAFT: frozenset({EventStatus.PUBLISHED, EventStatus.CANCELLED}),
    EventStatus.PUBLISHED: frozenset({EventStatus.DRAFT, EventStatus.CANCELLED}),
    EventStatus.CANCELLED: frozenset(),
}


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


# no 0/O or 1/I so codes survive being read aloud at the door
BOOKING_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
BOOKING_CODE_LENGTH = 8


def generate_booking_code() -> str:
    return "".join(secrets.choice(BOOKING_CODE_ALPHABET) for _ in range(BOOKING_CODE_LENGTH))


class Profile(UserMixin, db.Model):
    __tablename__ = "profiles"
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    fullname = db.Column(db.String(255), nullable=False)
    avatar_url = db.Column(db.String(1024), nullable=True)
    bio = db.Column(db.Text, nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    memberships = db.relationship("OrganizationMember", back_populates="profile", foreign_keys="OrganizationMember.user_id")
    bookings = db.relationship("Booking", back_populates="profile")

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self, include_email: bool = False) -> dict:
        data = {
            "id": self.id,
            "fullname": self.fullname,
            "avatar_url": self.avatar_url,
            "bio": self.bio,
        }
        if include_email:
            data["email"] = self.email
            data["created_at"] = self.created_at.isoformat()
        return data


class Organization(db.Model):
    __tablename__ = "organizations"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    slug = db.Column(db.String(140), unique=True, nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    logo_url = db.Column(db.String(1024), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    creator = db.relationship("Profile")
    members = db.relationship("OrganizationMember", back_populates="organization", cascade="all, delete-orphan")
    events = db.relationship("Event", back_populates="organization", cascade="all, delete-orphan")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "logo_url": self.logo_url,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "slug": self.slug, "logo_url": self.logo_url}


class OrganizationMember(db.Model):
    __tablename__ = "organization_members"
    __table_args__ = (db.UniqueConstraint("organization_id", "user_id", name="uq_organization_members_org_user"),)
    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default=OrganizationRole.MEMBER.value)  # member or organizer
    invited_by = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    organization = db.relationship("Organization", back_populates="members")
    profile = db.relationship("Profile", back_populates="memberships", foreign_keys=[user_id])

    @property
    def is_creator(self) -> bool:
        return self.organization is not None and self.user_id == self.organization.created_by

    def to_dict(self, with_profile: bool = False) -> dict:
        data = {
            "id": self.id,
            "organization_id": self.organization_id,
            "user_id": self.user_id,
            "role": self.role,
            "invited_by": self.invited_by,
            "joined_at": self.joined_at.isoformat(),
        }
        if with_profile:
            data["profile"] = self.profile.to_dict() if self.profile else None
        return data


class Event(db.Model):
    __tablename__ = "events"
    __table_args__ = (
        db.CheckConstraint("available_capacity >= 0", name="ck_events_available_non_negative"),
        db.CheckConstraint("available_capacity <= total_capacity", name="ck_events_available_le_total"),
    )
    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(220), unique=True, nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    cover_image_url = db.Column(db.String(1024), nullable=True)
    location = db.Column(db.String(255), nullable=True)
    venue_name = db.Column(db.String(255), nullable=True)
    start_date = db.Column(db.DateTime, nullable=False, index=True)
    end_date = db.Column(db.DateTime, nullable=False, index=True)
    ticket_price = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0"))
    is_free = db.Column(db.Boolean, nullable=False, default=True)
    total_capacity = db.Column(db.Integer, nullable=False)
    available_capacity = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=EventStatus.DRAFT.value, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    organization = db.relationship("Organization", back_populates="events")
    bookings = db.relationship("Booking", back_populates="event", cascade="all, delete-orphan")

    @property
    def sold_capacity(self) -> int:
        return self.total_capacity - self.available_capacity

    @property
    def booked_percentage(self) -> float:
        if not self.total_capacity:
            return 0.0
        return round(self.sold_capacity / self.total_capacity * 100, 1)

    def time_status(self, now: datetime | None = None) -> str:
        now = now or datetime.utcnow()
        if self.end_date < now:
            return "past"
        if self.start_date <= now <= self.end_date:
            return "ongoing"
        return "upcoming"

    def to_dict(self, with_organization: bool = True) -> dict:
        data = {
            "id": self.id,
            "organization_id": self.organization_id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "cover_image_url": self.cover_image_url,
            "location": self.location,
            "venue_name": self.venue_name,
            "start_date": self.start_date.isoformat() + "Z",
            "end_date": self.end_date.isoformat() + "Z",
            "ticket_price": float(self.ticket_price or 0),
            "is_free": self.is_free,
            "total_capacity": self.total_capacity,
            "available_capacity": self.available_capacity,
            "booked_percentage": self.booked_percentage,
            "status": self.status,
            "time_status": self.time_status(),
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if with_organization and self.organization is not None:
            data["organization"] = self.organization.summary()
        return data


class Booking(db.Model):
    __tablename__ = "bookings"
    __table_args__ = (
        # one confirmed booking per attendee and event; cancelled rows don't count
        db.Index(
            "uq_bookings_confirmed_event_user",
            "event_id",
            "user_id",
            unique=True,
            sqlite_where=db.text("status = 'confirmed'"),
            postgresql_where=db.text("status = 'confirmed'"),
        ),
        db.CheckConstraint("quantity >= 1", name="ck_bookings_quantity_positive"),
    )
    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    total_price = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0"))
    status = db.Column(db.String(16), nullable=False, default=BookingStatus.CONFIRMED.value)
    booking_code = db.Column(db.String(16), unique=True, nullable=False, index=True, default=generate_booking_code)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    event = db.relationship("Event", back_populates="bookings")
    profile = db.relationship("Profile", back_populates="bookings")

    def to_dict(self, with_event: bool = False, with_profile: bool = False) -> dict:
        data = {
            "id": self.id,
            "event_id": self.event_id,
            "user_id": self.user_id,
            "quantity": self.quantity,
            "total_price": float(self.total_price or 0),
            "status": self.status,
            "booking_code": self.booking_code,
            "created_at": self.created_at.isoformat(),
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }
        if with_event and self.event is not None:
            data["event"] = self.event.to_dict()
        if with_profile and self.profile is not None:
            data["profile"] = self.profile.to_dict(include_email=True)
        return data
