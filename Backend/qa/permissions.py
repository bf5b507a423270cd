from rest_framework.permissions import BasePermission, SAFE_METHODS


class IsOwnerOrModerator(BasePermission):
    """Allow the author of a question/answer, or a moderator, to change it."""

    def has_object_permission(self, request, view, obj):
        if request.method in SAFE_METHODS:
            return True
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if getattr(obj, "author_id", None) == user.id:
            return True
        return getattr(user, "is_moderator", False)
