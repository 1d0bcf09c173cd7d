from __future__ import annotations

from flask import Blueprint, flash, redirect, render_template, request, url_for

from ..policies import GroupRequiredMixin, base_url, group_service, notifier
from ..records import Group
from ..services.assignments import AssignmentError
from ..services.groups import GroupError, parse_participant_lines, receiver_for
from ..services.links import participant_url

groups_bp = Blueprint("groups", __name__, url_prefix="/groups")


@groups_bp.errorhandler(GroupError)
def handle_group_error(e: GroupError):
    return render_template("error.html", message=str(e)), e.status_code


def _roster_text(group: Group) -> str:
    return "\n".join(f"{p.name}, {p.email}" if p.email else p.name for p in group.participants)


def _back(group: Group):
    return redirect(url_for("groups.organizer", group_ref=group.code))


class OrganizerView(GroupRequiredMixin):
    def get(self, group: Group):
        base = base_url()
        names = {p.id: p.name for p in group.participants}
        rows = []
        for p in group.participants:
            a = group.assignment_for(p.id)
            rows.append({
                "participant": p,
                "receiver_name": names.get(a.receiver_id) if a else None,
                "url": participant_url(base, group, p.id),
            })
        return render_template(
            "groups/organizer.html",
            group=group,
            rows=rows,
            roster_text=_roster_text(group),
        )


class EditDetailsView(GroupRequiredMixin):
    def post(self, group: Group):
        try:
            group_service().update_group(
                group.id,
                group_name=request.form.get("group_name"),
                organizer_name=request.form.get("organizer_name"),
                organizer_email=request.form.get("organizer_email"),
            )
            flash("Group details saved.", "success")
        except GroupError as e:
            flash(str(e), "error")
        return _back(group)


class ReplaceParticipantsView(GroupRequiredMixin):
    def post(self, group: Group):
        # unchanged lines keep their participant id, and so their link
        known = {(p.name.lower(), p.email.lower()): p.id for p in group.participants}
        entries = parse_participant_lines(request.form.get("participants") or "")
        for entry in entries:
            pid = known.pop((entry["name"].lower(), entry["email"].lower()), None)
            if pid:
                entry["id"] = pid

        try:
            group_service().replace_participants(group.id, entries)
            flash("Participants saved and assignments redrawn. Earlier links may now show a different person.", "success")
        except (GroupError, AssignmentError) as e:
            flash(f"Failed to save participants: {e}", "error")
        return _back(group)


class RegenerateView(GroupRequiredMixin):
    def post(self, group: Group):
        try:
            group_service().regenerate_assignments(group.id)
            flash("Assignments regenerated.", "success")
        except (GroupError, AssignmentError) as e:
            flash(f"Failed to regenerate assignments: {e}", "error")
        return _back(group)


class NotifyView(GroupRequiredMixin):
    def post(self, group: Group):
        report = notifier().notify_group(group, base_url())
        category = "error" if report.failed else "success"
        flash(
            f"Notifications: {report.sent} sent, {report.skipped} skipped (no e-mail), {report.failed} failed.",
            category,
        )
        return _back(group)


class DeleteGroupView(GroupRequiredMixin):
    def post(self, group: Group):
        group_service().delete_group(group.id)
        flash(f"Deleted group {group.group_name}.", "success")
        return redirect(url_for("public.landing"))


class RevealView(GroupRequiredMixin):
    def get(self, group: Group, participant_id: str):
        giver, receiver = receiver_for(group, participant_id)
        return render_template(
            "groups/reveal.html",
            group=group,
            you_name=giver.name or "You",
            receiver_name=receiver.name or "Someone special",
        )


groups_bp.add_url_rule("/<group_ref>", view_func=OrganizerView.as_view("organizer"))
groups_bp.add_url_rule("/<group_ref>/details", view_func=EditDetailsView.as_view("edit_details"), methods=["POST"])
groups_bp.add_url_rule(
    "/<group_ref>/participants",
    view_func=ReplaceParticipantsView.as_view("replace_participants"),
    methods=["POST"],
)
groups_bp.add_url_rule("/<group_ref>/regenerate", view_func=RegenerateView.as_view("regenerate"), methods=["POST"])
groups_bp.add_url_rule("/<group_ref>/notify", view_func=NotifyView.as_view("notify"), methods=["POST"])
groups_bp.add_url_rule("/<group_ref>/delete", view_func=DeleteGroupView.as_view("delete"), methods=["POST"])
groups_bp.add_url_rule(
    "/<group_ref>/participant/<participant_id>", view_func=RevealView.as_view("reveal")
)
