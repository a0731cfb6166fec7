"""Signed bearer tokens for API clients.

The token is an itsdangerous payload ``{"uid": <profile id>}`` signed with
SECRET_KEY; clients send it as ``Authorization: Bearer <token>``.
"""
from __future__ import annotations

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .. import db
from ..models import Profile


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(
        current_app.config["SECRET_KEY"], salt=current_app.config.get("ACCESS_TOKEN_SALT", "fasticket-access-token")
    )


def create_access_token(profile: Profile) -> str:
    return _serializer().dumps({"uid": profile.id})


def verify_access_token(token: str) -> "int | None":
    max_age = current_app.config.get("ACCESS_TOKEN_MAX_AGE", 86400)
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info("Expired access token presented")
        return None
    except BadSignature:
        return None
    uid = data.get("uid") if isinstance(data, dict) else None
    return uid if isinstance(uid, int) else None


def load_user_from_request(request):
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    uid = verify_access_token(token.strip())
    if uid is None:
        return None
    return db.session.get(Profile, uid)
