from typing import Tuple, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.authentication import BaseAuthentication, CSRFCheck, get_authorization_header
from rest_framework.exceptions import AuthenticationFailed, PermissionDenied

from .models import Session

User = get_user_model()


class BearerSessionAuthentication(BaseAuthentication):
    """
    Authenticate with a `Bearer <token>` header, or the auth cookie, against the Session model.

    A session authenticates while it is neither revoked nor past `expires_at`.
    Cookie-borne tokens are sent by the browser on its own, so unsafe methods
    on that path must also pass Django's CSRF check.
    """

    keyword = "Bearer"

    def authenticate(self, request) -> Optional[Tuple[User, Session]]:
        auth = get_authorization_header(request).split()
        from_cookie = False
        if auth and auth[0].lower() == self.keyword.lower().encode():
            if len(auth) != 2:
                raise AuthenticationFailed("Invalid auth header")
            token = auth[1].decode("utf-8")
        else:
            token = request.COOKIES.get(settings.AUTH_COOKIE_NAME)
            if not token:
                return None
            from_cookie = True

        sess = (
            Session.objects.select_related("user")
            .filter(token=token, revoked=False, expires_at__gt=timezone.now())
            .first()
        )
        if sess is None:
            raise AuthenticationFailed("Token invalid, expired or revoked")
        if not sess.user.is_active:
            raise AuthenticationFailed("User inactive")
        if from_cookie:
            self.enforce_csrf(request)
        return sess.user, sess

    def enforce_csrf(self, request):
        check = CSRFCheck(lambda req: None)
        check.process_request(request)
        reason = check.process_view(request, None, (), {})
        if reason:
            raise PermissionDenied(f"CSRF Failed: {reason}")

    def authenticate_header(self, request):
        return self.keyword
