import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from .models import Notification, Session

logger = logging.getLogger(__name__)


def create_session(user) -> Session:
    """Issue a fresh bearer token valid for SESSION_EXP_MINUTES."""
    expires_at = timezone.now() + timedelta(minutes=settings.SESSION_EXP_MINUTES)
    return Session.objects.create(user=user, token=secrets.token_urlsafe(48), expires_at=expires_at)


def revoke_session(session: Session):
    Session.objects.filter(pk=session.pk).update(revoked=True)
    logger.debug("Session %s revoked", session.pk)


def notify(recipient, type_, content) -> Notification:
    notification = Notification.objects.create(recipient=recipient, type=type_, content=content)
    logger.debug("Notification %s (%s) queued for user %s", notification.pk, type_, recipient.pk)
    return notification


def format_time_ago(moment, now=None) -> str:
    """Human relative age such as "3 days ago"; anything under a minute is "Just now"."""
    now = now or timezone.now()
    seconds = int((now - moment).total_seconds())
    days, hours, minutes = seconds // 86400, seconds // 3600, seconds // 60
    if days > 0:
        return f"{days} day{'s' if days > 1 else ''} ago"
    if hours > 0:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    if minutes > 0:
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
    return "Just now"
