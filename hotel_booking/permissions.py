from rest_framework import permissions


class IsAdmin(permissions.BasePermission):
    """Only users with the ADMIN role (or superusers) get through."""

    message = 'Admin access required'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_admin)


class IsBookingOwnerOrAdmin(permissions.BasePermission):
    message = 'Access denied'

    def has_object_permission(self, request, view, obj):
        user = request.user
        if not user.is_authenticated:
            return False
        return user.is_admin or obj.user_id == user.id
