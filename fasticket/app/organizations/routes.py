from __future__ import annotations
from flask import Blueprint, jsonify, current_app, abort
from flask_login import login_required, current_user
from flask_babel import gettext as _
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from .. import db
from ..forms import InviteMemberForm, OrganizationForm, OrganizationUpdateForm, RemoveMemberForm, UpdateMemberRoleForm
from ..models import Event, EventStatus, Organization, OrganizationMember, OrganizationRole, Profile
from ..auth.permissions import get_role, is_member, organizer_required, require_organizer
from ..utils.slugs import generate_slug, is_slug_available

org_bp = Blueprint("organizations", __name__, url_prefix="/api/organizations")


@org_bp.route("", methods=["GET"])
@login_required
def list_orgs():
    rows = (
        db.session.query(OrganizationMember, Organization)
        .join(Organization, Organization.id == OrganizationMember.organization_id)
        .filter(OrganizationMember.user_id == current_user.id)
        .order_by(OrganizationMember.joined_at.desc(), OrganizationMember.id.desc())
        .all()
    )
    return jsonify([{**org.to_dict(), "userRole": mem.role} for mem, org in rows])


@org_bp.route("", methods=["POST"])
@login_required
def create_org():
    form = OrganizationForm.from_json()
    if not form.validate():
        abort(400, form.first_error())
    slug = form.slug.data
    if not slug:
        slug = generate_slug(form.name.data)
        if not slug:
            abort(400, _("Could not derive a slug from the name; please provide one"))
        # keep derived slugs from reading like numeric ids
        if slug.isdigit():
            slug = f"org-{slug}"
    # Pre-check for a friendly message; the unique constraint still has the last word
    if not is_slug_available(Organization, slug):
        abort(400, _("Slug is already taken"))

    org = Organization(
        name=form.name.data.strip(),
        slug=slug,
        description=form.description.data,
        logo_url=form.logo_url.data,
        created_by=current_user.id,
    )
    try:
        db.session.add(org)
        db.session.flush()
        # creator becomes the first organizer
        mem = OrganizationMember(
            user_id=current_user.id, organization_id=org.id, role=OrganizationRole.ORGANIZER.value
        )
        db.session.add(mem)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        abort(400, _("Slug is already taken"))
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Organization create failed")
        abort(500, _("Failed to create organization"))
    current_app.logger.info("Organization %s created by %s", org.slug, current_user.id)
    return jsonify({**org.to_dict(), "userRole": OrganizationRole.ORGANIZER.value}), 201


@org_bp.route("/<slug>", methods=["GET"])
def view_org(slug: str):
    org = Organization.query.filter_by(slug=slug).first()
    if org is None:
        abort(404, _("Organization not found"))
    roles = [m.role for m in org.members]
    data = org.to_dict()
    data["member_count"] = len(roles)
    data["organizer_count"] = roles.count(OrganizationRole.ORGANIZER.value)
    data["created_by_profile"] = org.creator.to_dict() if org.creator else None
    data["userRole"] = get_role(current_user.id, org.id) if current_user.is_authenticated else None
    return jsonify(data)


@org_bp.route("/<int:org_id>", methods=["PATCH"])
@organizer_required
def update_org(org_id: int):
    org = db.session.get(Organization, org_id)
    form = OrganizationUpdateForm.from_json()
    if not form.validate():
        abort(400, form.first_error())
    if "slug" in form.provided and form.slug.data and form.slug.data != org.slug:
        if not is_slug_available(Organization, form.slug.data, exclude_id=org.id):
            abort(400, _("Slug is already taken"))
        org.slug = form.slug.data
    if "name" in form.provided:
        if not form.name.data:
            abort(400, _("Name is required"))
        org.name = form.name.data.strip()
    for field in ("description", "logo_url"):
        if field in form.provided:
            setattr(org, field, form[field].data or None)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        abort(400, _("Slug is already taken"))
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Organization update failed")
        abort(500, _("Failed to update organization"))
    return jsonify(org.to_dict())


@org_bp.route("/<int:org_id>", methods=["DELETE"])
@login_required
def delete_org(org_id: int):
    org = db.session.get(Organization, org_id)
    if org is None:
        abort(404, _("Organization not found"))
    if org.created_by != current_user.id:
        abort(403, _("Only the creator can delete the organization"))
    try:
        db.session.delete(org)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Organization delete failed")
        abort(500, _("Failed to delete organization"))
    current_app.logger.info("Organization %s deleted by %s", org_id, current_user.id)
    return jsonify({"success": True})


@org_bp.route("/<int:org_id>/members", methods=["GET"])
@login_required
def list_members(org_id: int):
    org = db.session.get(Organization, org_id)
    if org is None:
        abort(404, _("Organization not found"))
    if not is_member(current_user.id, org.id):
        abort(403, _("Only members can view the member list"))
    members = (
        OrganizationMember.query.filter_by(organization_id=org.id)
        .order_by(OrganizationMember.joined_at.asc(), OrganizationMember.id.asc())
        .all()
    )
    return jsonify([{**m.to_dict(with_profile=True), "is_creator": m.is_creator} for m in members])


@org_bp.route("/<slug>/events", methods=["GET"])
def org_events(slug: str):
    org = Organization.query.filter_by(slug=slug).first()
    if org is None:
        abort(404, _("Organization not found"))
    q = Event.query.filter_by(organization_id=org.id)
    # members see drafts and cancelled events too
    if not (current_user.is_authenticated and is_member(current_user.id, org.id)):
        q = q.filter(Event.status == EventStatus.PUBLISHED.value)
    events = q.order_by(Event.start_date.desc()).all()
    return jsonify([e.to_dict(with_organization=False) for e in events])


@org_bp.route("/invite", methods=["POST"])
@login_required
def invite_member():
    form = InviteMemberForm.from_json()
    if not form.validate():
        abort(400, form.first_error())
    org = db.session.get(Organization, form.organization_id.data)
    if org is None:
        abort(404, _("Organization not found"))
    require_organizer(org.id, _("Only organizers can invite members"))

    profile = Profile.query.filter_by(email=form.email.data.strip().lower()).first()
    if profile is None:
        abort(404, _("User not found with this email"))
    if is_member(profile.id, org.id):
        abort(400, _("User is already a member"))

    mem = OrganizationMember(
        user_id=profile.id, organization_id=org.id, role=form.role.data, invited_by=current_user.id
    )
    try:
        db.session.add(mem)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        abort(400, _("User is already a member"))
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Invite member failed")
        abort(500, _("Failed to add member"))
    current_app.logger.info("Profile %s added to organization %s as %s", profile.id, org.id, mem.role)
    return jsonify({"success": True, "member": mem.to_dict()}), 201


def _load_target_member(member_id: int) -> OrganizationMember:
    target = db.session.get(OrganizationMember, member_id)
    if target is None:
        abort(404, _("Member not found"))
    return target


@org_bp.route("/members/update-role", methods=["PATCH"])
@login_required
def update_member_role():
    form = UpdateMemberRoleForm.from_json()
    if not form.validate():
        abort(400, form.first_error())
    target = _load_target_member(form.member_id.data)
    require_organizer(target.organization_id, _("Only organizers can update roles"))
    if target.is_creator:
        abort(400, _("Cannot change the creator's role"))
    try:
        target.role = form.role.data
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Update role failed")
        abort(500, _("Failed to update role"))
    return jsonify({"success": True, "member": target.to_dict()})


@org_bp.route("/members/remove", methods=["DELETE"])
@login_required
def remove_member():
    form = RemoveMemberForm.from_json()
    if not form.validate():
        abort(400, form.first_error())
    target = _load_target_member(form.member_id.data)
    require_organizer(target.organization_id, _("Only organizers can remove members"))
    # the creator always stays
    if target.is_creator:
        abort(400, _("Cannot remove the organization creator"))
    try:
        db.session.delete(target)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Remove member failed")
        abort(500, _("Failed to remove member"))
    return jsonify({"success": True})
