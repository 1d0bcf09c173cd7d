from __future__ import annotations

from flask import Blueprint, flash, jsonify, redirect, render_template, request, url_for
from flask.views import MethodView

from ..policies import group_service
from ..services.assignments import AssignmentError
from ..services.groups import GroupError, parse_participant_lines


public_bp = Blueprint("public", __name__)


class LandingView(MethodView):
    def get(self):
        return render_template("landing.html", form={})

    def post(self):
        form = {
            "group_name": (request.form.get("group_name") or "").strip(),
            "organizer_name": (request.form.get("organizer_name") or "").strip(),
            "organizer_email": (request.form.get("organizer_email") or "").strip(),
            "participants": request.form.get("participants") or "",
        }
        try:
            group = group_service().create_group(
                group_name=form["group_name"],
                organizer_name=form["organizer_name"],
                organizer_email=form["organizer_email"],
                participants=parse_participant_lines(form["participants"]),
            )
        except (GroupError, AssignmentError) as e:
            flash(str(e), "error")
            return render_template("landing.html", form=form), 400

        flash("Group created. Share each participant's link with them only.", "success")
        return redirect(url_for("groups.organizer", group_ref=group.code))


class HealthView(MethodView):
    def get(self):
        return jsonify({"status": "ok"})


public_bp.add_url_rule("/", view_func=LandingView.as_view("landing"), methods=["GET", "POST"])
public_bp.add_url_rule("/healthz", view_func=HealthView.as_view("health"))
