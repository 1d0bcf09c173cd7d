from __future__ import annotations

from flask import current_app, request
from flask.views import MethodView

from .services.groups import GroupService
from .services.notifications import NotificationDispatcher


def group_service() -> GroupService:
    return current_app.extensions["santagroups.groups"]


def notifier() -> NotificationDispatcher:
    return current_app.extensions["santagroups.notifier"]


def base_url() -> str:
    configured = (current_app.config.get("SANTA_BASE_URL") or "").strip()
    return (configured or request.host_url).rstrip("/")


class GroupRequiredMixin(MethodView):
    """
    Resolves the <group_ref> URL part (group id or code) before dispatching,
    and hands the group to the handler instead of the raw reference.
    GroupNotFound propagates to the blueprint's error handler.
    """
    def dispatch_request(self, *args, **kwargs):
        group_ref = kwargs.pop("group_ref")
        kwargs["group"] = group_service().get_group(group_ref)
        return super().dispatch_request(*args, **kwargs)
