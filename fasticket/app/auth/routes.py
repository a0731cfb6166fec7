from __future__ import annotations
from flask import Blueprint, jsonify, request, current_app, abort, session
from flask_login import login_user, logout_user, login_required, current_user
from flask_babel import gettext as _
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from .. import db
from ..models import Profile
from ..forms import RegisterForm, LoginForm
from .tokens import create_access_token

auth_bp = Blueprint("auth", __name__)


@auth_bp.route('/set-language', methods=['POST'])
def set_language():
    data = request.get_json(silent=True) or request.form
    lang = data.get('lang')
    if lang not in current_app.config.get("SUPPORTED_LOCALES", ("en", "tr")):
        abort(400, _("Unsupported language"))
    session['lang'] = lang
    return jsonify({"lang": lang})


@auth_bp.route("/auth/register", methods=["POST"])
def register():
    form = RegisterForm.from_json()
    if not form.validate():
        abort(400, form.first_error())
    email = form.email.data.strip().lower()
    if Profile.query.filter_by(email=email).first():
        abort(400, _("Email is already registered"))
    profile = Profile(email=email, fullname=form.fullname.data.strip())
    profile.set_password(form.password.data)
    try:
        db.session.add(profile)
        db.session.commit()
    except IntegrityError:
        # lost a race against another registration with the same email
        db.session.rollback()
        abort(400, _("Email is already registered"))
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Profile registration failed")
        abort(500, _("Failed to register"))
    current_app.logger.info("Registered profile %s", profile.id)
    return jsonify({"success": True, "profile": profile.to_dict(include_email=True)}), 201


@auth_bp.route("/auth/login", methods=["POST"])
def login():
    form = LoginForm.from_json()
    if not form.validate():
        abort(400, form.first_error())
    profile = Profile.query.filter_by(email=form.email.data.strip().lower()).first()
    if profile is None or not profile.check_password(form.password.data):
        abort(401, _("Invalid email or password"))
    login_user(profile)
    return jsonify({"access_token": create_access_token(profile), "token_type": "bearer", "profile": profile.to_dict(include_email=True)})


@auth_bp.route("/auth/sign-out", methods=["POST"])
@login_required
def sign_out():
    logout_user()
    return jsonify({"success": True})


@auth_bp.route("/auth/me", methods=["GET"])
@login_required
def me():
    return jsonify(current_user.to_dict(include_email=True))
