"""
Roles and Modules Configuration
This config defines the group roles, the feature modules they are gated on and
the default access matrix applied when a group has no stored permissions (or a
stored permission document lacks a module entry).
Used by the permission service, the seed script and the access dependencies.
"""

from enum import Enum
from typing import Dict, List


class UserRole(str, Enum):
    ADMIN = "Admin"
    MANAGER = "Manager"
    MUSICIAN = "Musician"
    MEMBER = "Member"


class ModuleType(str, Enum):
    ADMIN = "admin"
    CALENDAR = "calendar"
    SETLISTS = "setlists"
    TASKS = "tasks"
    CHATS = "chats"
    FINANCES = "finances"
    MERCHANDISE = "merchandise"
    CONTACTS = "contacts"


ALL_ROLES: List[UserRole] = [UserRole.ADMIN, UserRole.MANAGER, UserRole.MUSICIAN, UserRole.MEMBER]

# Module descriptions (display names in the admin panel)
MODULES = {
    ModuleType.ADMIN: "Administration",
    ModuleType.CALENDAR: "Calendar",
    ModuleType.SETLISTS: "Setlists",
    ModuleType.TASKS: "Tasks",
    ModuleType.CHATS: "Chats",
    ModuleType.FINANCES: "Finances",
    ModuleType.MERCHANDISE: "Merchandise",
    ModuleType.CONTACTS: "Contacts",
}

# Default role access per module
DEFAULT_MODULE_ROLES: Dict[ModuleType, List[UserRole]] = {
    ModuleType.ADMIN: [UserRole.ADMIN],
    ModuleType.FINANCES: [UserRole.ADMIN, UserRole.MANAGER],
    ModuleType.MERCHANDISE: [UserRole.ADMIN, UserRole.MANAGER],
    ModuleType.CONTACTS: [UserRole.ADMIN, UserRole.MANAGER],
    ModuleType.CALENDAR: list(ALL_ROLES),
    ModuleType.SETLISTS: list(ALL_ROLES),
    ModuleType.TASKS: list(ALL_ROLES),
    ModuleType.CHATS: list(ALL_ROLES),
}

# Roles allowed to edit module content and manage members
EDITOR_ROLES = {UserRole.ADMIN, UserRole.MANAGER}


def get_default_roles(module: ModuleType) -> List[UserRole]:
    """Return a fresh copy of the default allowed roles for a module"""
    return list(DEFAULT_MODULE_ROLES[module])

