"""Chat announcements for incident report events.

The report workflow calls `notify_report_event` after its own write commits;
the announcement is appended and broadcast like any user message, authored by
the system account.
"""
import logging

from flask import current_app

from models.user_model import User
from services.chat_service import submit_message
from services.errors import ChatError

logger = logging.getLogger(__name__)


def _field(report, name, default=None):
    if isinstance(report, dict):
        return report.get(name, default)
    return getattr(report, name, default)


def report_event_text(report, is_update):
    categories = _field(report, 'category') or _field(report, 'categories') or []
    if isinstance(categories, str):
        categories = [categories]
    return "Case {}: {} has been {}. Status: {}".format(
        ' || '.join(categories),
        _field(report, 'title', ''),
        'updated' if is_update else 'created',
        _field(report, 'status', 'pending'),
    )


def system_user():
    return User.query.filter_by(email=current_app.config['SYSTEM_USER_EMAIL']).first()


def announce_report_event(report, is_update=False, broadcaster=None):
    """Append and broadcast the system message. Returns the payload or None."""
    author = system_user()
    if not author:
        logger.warning("[SYSTEM] No system user %s; skipping report announcement",
                       current_app.config['SYSTEM_USER_EMAIL'])
        return None
    return submit_message(author.id, report_event_text(report, is_update), broadcaster=broadcaster)


def notify_report_event(app, report, is_update=False):
    """Schedule the announcement in the background and return immediately."""
    socketio = app.extensions['socketio']

    def _run():
        with app.app_context():
            try:
                announce_report_event(report, is_update)
            except ChatError:
                logger.exception("[SYSTEM] Report announcement failed")

    return socketio.start_background_task(_run)
