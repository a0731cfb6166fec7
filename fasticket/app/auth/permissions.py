"""Organization membership checks.

Every route that needs "is this user an organizer of that organization" goes
through here instead of querying organization_members on its own.
"""
from __future__ import annotations
from functools import wraps
from flask import abort
from flask_login import current_user
from .. import db
from ..models import Event, EventStatus, Organization, OrganizationMember, OrganizationRole


def get_membership(user_id: int, organization_id: int) -> "OrganizationMember | None":
    return OrganizationMember.query.filter_by(user_id=user_id, organization_id=organization_id).first()


def get_role(user_id: int, organization_id: int) -> "str | None":
    mem = get_membership(user_id, organization_id)
    return mem.role if mem else None


def is_member(user_id: int, organization_id: int) -> bool:
    return get_membership(user_id, organization_id) is not None


def is_organizer(user_id: int, organization_id: int) -> bool:
    return get_role(user_id, organization_id) == OrganizationRole.ORGANIZER.value


def can_manage_event(user_id: int, event: Event) -> bool:
    return is_organizer(user_id, event.organization_id)


def can_view_event(user, event: Event) -> bool:
    """Published events are public; drafts and cancelled events only to the organization's members."""
    if event.status == EventStatus.PUBLISHED.value:
        return True
    if not getattr(user, "is_authenticated", False):
        return False
    return is_member(user.id, event.organization_id)


def require_organizer(organization_id: int, message: str = "Organizer access required") -> None:
    if not current_user.is_authenticated:
        abort(401, "Unauthorized")
    if not is_organizer(current_user.id, organization_id):
        abort(403, message)


def organizer_required(f):
    """View decorator for routes taking an ``org_id`` view argument."""
    @wraps(f)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            abort(401, "Unauthorized")
        org = db.session.get(Organization, kwargs.get("org_id"))
        if org is None:
            abort(404, "Organization not found")
        require_organizer(org.id)
        return f(*args, **kwargs)
    return wrapped


def event_manager_required(f):
    """View decorator for routes taking an ``event_id`` view argument."""
    @wraps(f)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            abort(401, "Unauthorized")
        event = db.session.get(Event, kwargs.get("event_id"))
        if event is None:
            abort(404, "Event not found")
        if not can_manage_event(current_user.id, event):
            abort(403, "Event management access required")
        return f(*args, **kwargs)
    return wrapped
