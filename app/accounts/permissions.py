from rest_framework.permissions import BasePermission


def is_admin_user(user) -> bool:
    return bool(user and user.is_authenticated and getattr(user, "is_admin", False))


class IsAttendanceAdmin(BasePermission):
    message = "Admin role required."

    def has_permission(self, request, view):
        return is_admin_user(request.user)
