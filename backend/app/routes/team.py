# Overview: Flask API routes for merchant team members and invitations.

from flask import Blueprint, request, jsonify, g

from ..models.auth import ROLE_MERCHANT
from ..services import team_service
from ..validation import ValidationError
from ..decorators import handle_service_errors, require_auth, require_merchant, require_role


team_bp = Blueprint("team", __name__, url_prefix="/api/team")


@team_bp.get("")
@require_auth
@require_merchant
@handle_service_errors("list team")
def list_team_route():
    return jsonify(team_service.list_team(g.merchant_id)), 200


@team_bp.post("/invitations")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT)
@handle_service_errors("invite team member")
def invite_route():
    """Body: {"email", "name"?}. 403 with resource/used/limit when the team is full."""
    data = request.get_json(silent=True) or {}
    if not data.get("email"):
        raise ValidationError("email is required", field="email")
    invitation = team_service.invite_member(
        merchant_id=g.merchant_id,
        email=data["email"],
        name=data.get("name"),
        invited_by_user_id=g.current_user.id,
    )
    return jsonify({"invitation": invitation}), 201


@team_bp.post("/invitations/<int:invitation_id>/accept")
@handle_service_errors("accept invitation")
def accept_route(invitation_id: int):
    """Public: the invitee sets a password and becomes a staff user."""
    data = request.get_json(silent=True) or {}
    if not data.get("password"):
        raise ValidationError("password is required", field="password")
    user = team_service.accept_invitation(invitation_id=invitation_id, password=data["password"])
    return jsonify({"user": user.to_dict()}), 201


@team_bp.delete("/invitations/<int:invitation_id>")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT)
@handle_service_errors("revoke invitation")
def revoke_route(invitation_id: int):
    if not team_service.revoke_invitation(invitation_id=invitation_id, merchant_id=g.merchant_id):
        return jsonify({"error": "Invitation not found"}), 404
    return jsonify({"ok": True}), 200
