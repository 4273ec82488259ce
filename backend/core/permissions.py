from rest_framework.permissions import BasePermission, SAFE_METHODS

from .models import Permission, UserRole, STAFF_ROLES


def _is_active_user(user):
    return bool(user and user.is_authenticated and user.is_active)


class IsAdminRole(BasePermission):
    """Only users with the ADMIN role"""
    message = 'Admin access required'

    def has_permission(self, request, view):
        return _is_active_user(request.user) and request.user.role == UserRole.ADMIN


class IsStaffRole(BasePermission):
    """ADMIN or CONTENT_MANAGER"""
    message = 'Staff access required'

    def has_permission(self, request, view):
        return _is_active_user(request.user) and request.user.role in STAFF_ROLES


class HasAppPermission(BasePermission):
    """
    Grants access when the user's role is one of `granted_roles` or the
    user was explicitly given `permission`.
    """
    permission = None
    granted_roles = STAFF_ROLES
    message = 'Insufficient permissions'

    def has_permission(self, request, view):
        user = request.user
        if not _is_active_user(user):
            return False
        if user.role in self.granted_roles:
            return True
        return user.has_app_permission(self.permission)


class CanManageProducts(HasAppPermission):
    permission = Permission.MANAGE_PRODUCTS


class CanManageQuotes(HasAppPermission):
    permission = Permission.MANAGE_QUOTES


class CanManageMedia(HasAppPermission):
    permission = Permission.MANAGE_MEDIA


class CanViewAnalytics(HasAppPermission):
    permission = Permission.VIEW_ANALYTICS


class CanManageUsers(HasAppPermission):
    permission = Permission.MANAGE_USERS
    granted_roles = (UserRole.ADMIN,)


class IsAdminRoleOrReadOnly(IsAdminRole):
    """Anyone may read; only ADMIN may write"""

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return super().has_permission(request, view)


class CanManageProductsOrReadOnly(CanManageProducts):
    """Public catalog reads; writes need MANAGE_PRODUCTS"""

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return super().has_permission(request, view)


class CanManageMediaOrReadOnly(CanManageMedia):
    """Public media reads; writes need MANAGE_MEDIA"""

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return super().has_permission(request, view)


class CanManageQuotesOrSubmit(CanManageQuotes):
    """Anyone may submit (POST) a quote; everything else needs MANAGE_QUOTES"""

    def has_permission(self, request, view):
        if request.method == 'POST':
            return True
        return super().has_permission(request, view)
