"""
Role groups used by the warehouse views.

Views check roles inline and answer 403 with an ``error`` body, e.g.::

    if not has_role(request.user, STORAGE_MASTER_ROLES):
        return Response({'error': '...'}, status=status.HTTP_403_FORBIDDEN)
"""
from .models import User

ITEM_EDITOR_ROLES = (User.ROLE_SUPERADMIN, User.ROLE_ITEM_MASTER)

STORAGE_MASTER_ROLES = (
    User.ROLE_SUPERADMIN,
    User.ROLE_STORAGE_MASTER,
    User.ROLE_STORAGE_MASTER_MANAGER,
)

CLEARANCE_APPROVER_ROLES = (User.ROLE_SUPERADMIN, User.ROLE_STORAGE_MASTER_MANAGER)

CLEARANCE_REQUESTER_ROLES = ITEM_EDITOR_ROLES + STORAGE_MASTER_ROLES[1:]

MOVER_ROLES = (
    User.ROLE_SUPERADMIN,
    User.ROLE_STORAGE_MASTER,
    User.ROLE_STORAGE_MANAGER,
)

BORROW_MANAGER_ROLES = (User.ROLE_SUPERADMIN, User.ROLE_MANAGER)


def has_role(user, roles):
    """True when the authenticated user holds one of ``roles``"""
    if not user or not user.is_authenticated:
        return False
    return user.role in roles


def is_superadmin(user):
    return has_role(user, (User.ROLE_SUPERADMIN,))


def user_capabilities(user):
    """Capability flags exposed to the frontend on /auth/me/"""
    return {
        'is_admin': is_superadmin(user),
        'can_manage_items': has_role(user, ITEM_EDITOR_ROLES),
        'can_manage_storage': has_role(user, STORAGE_MASTER_ROLES),
        'can_move_stock': has_role(user, MOVER_ROLES),
        'can_approve_clearance': has_role(user, CLEARANCE_APPROVER_ROLES),
        'can_approve_borrow': has_role(user, BORROW_MANAGER_ROLES + STORAGE_MASTER_ROLES[1:]),
    }
