"""Role-based access control.

A fixed role -> permission table. Routes ask has_permission(role, action)
through the permission_required decorator; nothing else reads the table.
"""

ROLE_PERMISSIONS = {
    "SUPER_ADMIN": {
        "projects:create",
        "projects:edit:all",
        "projects:delete",
        "projects:view:all",
        "tasks:create",
        "tasks:edit",
        "tasks:delete",
        "tasks:assign",
        "users:manage",
        "settings:manage",
    },
    "ADMIN": {
        "projects:create",
        "projects:edit:all",
        "projects:view:all",
        "tasks:create",
        "tasks:edit",
        "tasks:delete",
        "tasks:assign",
    },
    "PROJECT_MANAGER": {
        "projects:create",
        "projects:edit:assigned",
        "projects:view:assigned",
        "tasks:create",
        "tasks:edit",
        "tasks:assign",
    },
    "TEAM_MEMBER": {
        "projects:view:assigned",
        "tasks:edit",
    },
    "STAKEHOLDER": {
        "projects:view:assigned",
    },
}


def has_permission(role, permission):
    """True if ``role`` grants ``permission``. Unknown roles grant nothing."""
    return permission in ROLE_PERMISSIONS.get(role, ())


def can_edit_project(role, is_assigned):
    """Admins edit any project; project managers only their own."""
    if has_permission(role, "projects:edit:all"):
        return True
    return is_assigned and has_permission(role, "projects:edit:assigned")
