from __future__ import annotations

from flask import Blueprint, jsonify, redirect, request, url_for
from flask.views import MethodView

from ..policies import GroupRequiredMixin, base_url, group_service, notifier
from ..records import Group
from ..services.assignments import AssignmentError, DerangementUnobtainable, InsufficientParticipants
from ..services.groups import GroupError
from ..services.links import organizer_url, participant_urls

api_bp = Blueprint("api", __name__, url_prefix="/api")

# JSON body keys -> service field names
_FIELDS = {
    "groupName": "group_name",
    "organizerName": "organizer_name",
    "organizerEmail": "organizer_email",
}


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise GroupError("Request body must be a JSON object.")
    return data


def _group_detail(group: Group) -> dict:
    base = base_url()
    return {
        **group.summary(),
        "updatedAt": group.updated_at,
        "participants": [p.to_dict() for p in group.participants],
        "assignments": [a.to_dict() for a in group.assignments],
        "links": {
            "organizerUrl": organizer_url(base, group),
            "participantBaseUrl": f"{organizer_url(base, group)}/participant/:participantId",
            "participantUrls": participant_urls(base, group),
        },
    }


@api_bp.errorhandler(GroupError)
def handle_group_error(e: GroupError):
    return jsonify({"error": str(e)}), e.status_code


@api_bp.errorhandler(AssignmentError)
def handle_assignment_error(e: AssignmentError):
    if isinstance(e, InsufficientParticipants):
        return jsonify({"error": str(e)}), 400
    if isinstance(e, DerangementUnobtainable):
        return jsonify({"error": str(e), "retryable": True}), 503
    return jsonify({"error": str(e)}), 500


class GroupListAPI(MethodView):
    def get(self):
        return jsonify({"groups": [g.summary() for g in group_service().list_groups()]})

    def post(self):
        data = _json_body()
        group = group_service().create_group(
            group_name=data.get("groupName"),
            organizer_name=data.get("organizerName"),
            organizer_email=data.get("organizerEmail"),
            participants=data.get("participants"),
        )
        base = base_url()
        return jsonify({
            "groupId": group.id,
            "groupCode": group.code,
            "groupName": group.group_name,
            "organizerName": group.organizer_name,
            "organizerEmail": group.organizer_email,
            "createdAt": group.created_at,
            "organizerUrl": organizer_url(base, group),
            "participantUrls": participant_urls(base, group),
        }), 201


class GroupAPI(GroupRequiredMixin):
    def get(self, group: Group):
        return jsonify(_group_detail(group))

    def patch(self, group: Group):
        data = _json_body()
        unknown = set(data) - set(_FIELDS)
        if unknown:
            raise GroupError(f"Unknown field(s): {', '.join(sorted(unknown))}.")
        fields = {_FIELDS[k]: v for k, v in data.items()}
        updated = group_service().update_group(group.id, **fields)
        return jsonify(_group_detail(updated))

    def delete(self, group: Group):
        group_service().delete_group(group.id)
        return "", 204


class ParticipantsAPI(GroupRequiredMixin):
    def put(self, group: Group):
        data = _json_body()
        updated = group_service().replace_participants(group.id, data.get("participants"))
        return jsonify(_group_detail(updated))


class RegenerateAPI(GroupRequiredMixin):
    def post(self, group: Group):
        updated = group_service().regenerate_assignments(group.id)
        return jsonify({
            "message": "Assignments regenerated successfully.",
            "groupId": updated.id,
            "groupCode": updated.code,
            "assignments": [a.to_dict() for a in updated.assignments],
        })


class NotifyAPI(GroupRequiredMixin):
    def post(self, group: Group):
        report = notifier().notify_group(group, base_url())
        return jsonify(report.to_dict())


class ParticipantLinkAPI(GroupRequiredMixin):
    """Older links pointed under /api; send them to the reveal page."""
    def get(self, group: Group, participant_id: str):
        return redirect(url_for("groups.reveal", group_ref=group.code, participant_id=participant_id))


api_bp.add_url_rule("/groups", view_func=GroupListAPI.as_view("groups"), methods=["GET", "POST"])
api_bp.add_url_rule(
    "/groups/<group_ref>", view_func=GroupAPI.as_view("group"), methods=["GET", "PATCH", "DELETE"]
)
api_bp.add_url_rule(
    "/groups/<group_ref>/participants", view_func=ParticipantsAPI.as_view("participants"), methods=["PUT"]
)
api_bp.add_url_rule(
    "/groups/<group_ref>/regenerate", view_func=RegenerateAPI.as_view("regenerate"), methods=["POST"]
)
api_bp.add_url_rule("/groups/<group_ref>/notify", view_func=NotifyAPI.as_view("notify"), methods=["POST"])
api_bp.add_url_rule(
    "/groups/<group_ref>/participant/<participant_id>",
    view_func=ParticipantLinkAPI.as_view("participant_link"),
)
