from rest_framework.permissions import BasePermission


class IsAdminRole(BasePermission):
    """
    Allow access only to authenticated admins (role = 'admin' or is_admin = True).
    """

    def has_permission(self, request, view):
        return bool(
            request.user and
            request.user.is_authenticated and
            (getattr(request.user, "role", None) == 'admin' or getattr(request.user, "is_admin", False) is True)
        )


class IsBillingRole(BasePermission):
    """
    Checkout, merge and payment collection are closed to kitchen users.
    """

    def has_permission(self, request, view):
        return bool(
            request.user and
            request.user.is_authenticated and
            getattr(request.user, "role", None) != 'kitchen'
        )


def property_scope(user):
    """Property id a manager or kitchen user is limited to, None for unrestricted users."""
    if getattr(user, "is_property_scoped", False):
        return user.assigned_property_id
    return None
