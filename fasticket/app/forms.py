from __future__ import annotations
from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import StringField, PasswordField, TextAreaField, IntegerField, DecimalField, BooleanField
from wtforms.validators import (
    AnyOf,
    DataRequired,
    Email,
    InputRequired,
    Length,
    NumberRange,
    Optional,
    Regexp,
    ValidationError,
)
from .models import EventStatus, OrganizationRole
from .utils.dates import parse_iso8601

ROLES = [r.value for r in OrganizationRole]
EVENT_STATUSES = [s.value for s in EventStatus]
SLUG_RE = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


def _is_boolean_field(form_cls, name: str) -> bool:
    field_class = getattr(getattr(form_cls, name, None), "field_class", None)
    return isinstance(field_class, type) and issubclass(field_class, BooleanField)


class JSONForm(FlaskForm):
    """FlaskForm fed from a JSON body instead of form-encoded data.

    `aliases` maps the camelCase keys clients send (``eventId``) onto field names.
    `provided` lists the fields present in the body, which PATCH handlers use to
    leave untouched columns alone.
    """

    aliases: dict[str, str] = {}

    class Meta:
        csrf = False

    @classmethod
    def from_json(cls, payload=None):
        if payload is None:
            payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            payload = {}
        formdata = MultiDict()
        provided = set()
        for key, value in payload.items():
            name = cls.aliases.get(key, key)
            if value is None:
                continue
            if isinstance(value, bool) or (_is_boolean_field(cls, name) and value in (0, 1)):
                # BooleanField only treats "false" and "" as false
                value = "true" if value else "false"
            elif not isinstance(value, str):
                value = str(value)
            formdata[name] = value
            provided.add(name)
        form = cls(formdata=formdata)
        form.provided = provided
        return form

    def first_error(self) -> str:
        for field in self:
            if field.errors:
                return str(field.errors[0])
        return "Invalid request"


class RegisterForm(JSONForm):
    email = StringField("email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("password", validators=[DataRequired(), Length(min=8)])
    fullname = StringField("fullname", validators=[DataRequired(), Length(min=2, max=255)])


class LoginForm(JSONForm):
    email = StringField("email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("password", validators=[DataRequired()])


class ProfileForm(JSONForm):
    aliases = {"fullName": "fullname", "avatarUrl": "avatar_url"}

    fullname = StringField(
        "fullname", validators=[Optional(), Length(min=2, max=255, message="Full name must be at least 2 characters")]
    )
    avatar_url = StringField("avatar_url", validators=[Optional(), Length(max=1024)])
    bio = TextAreaField("bio", validators=[Optional(), Length(max=2000)])


class OrganizationForm(JSONForm):
    aliases = {"logoUrl": "logo_url"}

    name = StringField("name", validators=[DataRequired(message="Name is required"), Length(min=2, max=128)])
    slug = StringField(
        "slug",
        validators=[
            Optional(),
            Length(max=140),
            Regexp(SLUG_RE, message="Slug may only contain lowercase letters, digits and single hyphens"),
        ],
    )
    description = TextAreaField("description", validators=[Optional(), Length(max=2000)])
    logo_url = StringField("logo_url", validators=[Optional(), Length(max=1024)])


class OrganizationUpdateForm(OrganizationForm):
    name = StringField("name", validators=[Optional(), Length(min=2, max=128)])


class InviteMemberForm(JSONForm):
    aliases = {"organizationId": "organization_id"}

    organization_id = IntegerField("organization_id", validators=[InputRequired(message="Missing required fields")])
    email = StringField(
        "email",
        validators=[DataRequired(message="Missing required fields"), Email(message="Invalid email address")],
    )
    role = StringField(
        "role",
        validators=[DataRequired(message="Missing required fields"), AnyOf(ROLES, message="Invalid role")],
    )


class UpdateMemberRoleForm(JSONForm):
    aliases = {"memberId": "member_id"}

    member_id = IntegerField("member_id", validators=[InputRequired(message="Missing required fields")])
    role = StringField(
        "role",
        validators=[DataRequired(message="Missing required fields"), AnyOf(ROLES, message="Invalid role")],
    )


class RemoveMemberForm(JSONForm):
    aliases = {"memberId": "member_id"}

    member_id = IntegerField("member_id", validators=[InputRequired(message="Member ID is required")])


def _validate_iso(form, field):
    if field.data:
        try:
            parse_iso8601(field.data)
        except ValueError:
            raise ValidationError(f"{field.name} must be an ISO 8601 datetime")


class EventForm(JSONForm):
    aliases = {
        "coverImageUrl": "cover_image_url",
        "venueName": "venue_name",
        "startDate": "start_date",
        "endDate": "end_date",
        "ticketPrice": "ticket_price",
        "isFree": "is_free",
        "totalCapacity": "total_capacity",
    }

    title = StringField("title", validators=[DataRequired(message="Title is required"), Length(max=200)])
    description = TextAreaField("description", validators=[Optional(), Length(max=5000)])
    cover_image_url = StringField("cover_image_url", validators=[Optional(), Length(max=1024)])
    location = StringField("location", validators=[Optional(), Length(max=255)])
    venue_name = StringField("venue_name", validators=[Optional(), Length(max=255)])
    start_date = StringField("start_date", validators=[DataRequired(message="start_date is required"), _validate_iso])
    end_date = StringField("end_date", validators=[DataRequired(message="end_date is required"), _validate_iso])
    ticket_price = DecimalField("ticket_price", places=2, validators=[Optional(), NumberRange(min=0)])
    is_free = BooleanField("is_free")
    total_capacity = IntegerField(
        "total_capacity",
        validators=[InputRequired(message="total_capacity is required"), NumberRange(min=1, max=1_000_000)],
    )
    status = StringField("status", validators=[Optional(), AnyOf(EVENT_STATUSES, message="Invalid status")])

    def validate_end_date(self, field):
        if not (self.start_date.data and field.data) or self.start_date.errors:
            return
        try:
            start, end = parse_iso8601(self.start_date.data), parse_iso8601(field.data)
        except ValueError:
            return
        if end <= start:
            raise ValidationError("End date must be after the start date")


class EventUpdateForm(EventForm):
    title = StringField("title", validators=[Optional(), Length(max=200)])
    start_date = StringField("start_date", validators=[Optional(), _validate_iso])
    end_date = StringField("end_date", validators=[Optional(), _validate_iso])
    total_capacity = IntegerField("total_capacity", validators=[Optional(), NumberRange(min=1, max=1_000_000)])


class EventStatusForm(JSONForm):
    status = StringField(
        "status",
        validators=[DataRequired(message="Status is required"), AnyOf(EVENT_STATUSES, message="Invalid status")],
    )


class BookingForm(JSONForm):
    aliases = {"eventId": "event_id"}

    event_id = IntegerField("event_id", validators=[InputRequired(message="Event ID is required")])
    quantity = IntegerField(
        "quantity", default=1, validators=[Optional(), NumberRange(min=1, message="Quantity must be at least 1")]
    )
