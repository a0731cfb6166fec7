from __future__ import annotations
from flask import Blueprint, jsonify, current_app, abort
from flask_login import login_required, current_user
from flask_babel import gettext as _
from sqlalchemy.exc import SQLAlchemyError
from .. import db
from ..forms import ProfileForm
from ..models import Profile

profiles_bp = Blueprint("profiles", __name__, url_prefix="/api")


@profiles_bp.route("/profile", methods=["GET"])
@login_required
def get_profile():
    profile = current_user
    data = profile.to_dict(include_email=True)
    data["organizations"] = [
        {**m.organization.summary(), "role": m.role} for m in profile.memberships if m.organization is not None
    ]
    return jsonify(data)


@profiles_bp.route("/profile", methods=["PATCH"])
@login_required
def update_profile():
    form = ProfileForm.from_json()
    if not form.validate():
        abort(400, form.first_error())
    if "fullname" in form.provided and len((form.fullname.data or "").strip()) < 2:
        abort(400, _("Full name must be at least 2 characters"))
    profile = db.session.get(Profile, current_user.id)
    for field in ("fullname", "avatar_url", "bio"):
        if field in form.provided:
            value = form[field].data
            setattr(profile, field, value.strip() if isinstance(value, str) else value)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Profile update failed")
        abort(500, _("Failed to update profile"))
    return jsonify({"success": True, "profile": profile.to_dict(include_email=True)})


@profiles_bp.route("/profiles/<int:profile_id>", methods=["GET"])
def public_profile(profile_id: int):
    profile = db.session.get(Profile, profile_id)
    if profile is None:
        abort(404, _("Profile not found"))
    return jsonify(profile.to_dict())
