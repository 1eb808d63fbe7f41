"""
User roles enumeration.

Defines the role types for the fleet tracking system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        MASTER_ADMIN: Platform operator, no company scope
        ADMIN: Company administrator (dispatch office)
        DRIVER: Vehicle operator of a company
        PARENT: Guardian of one or more riders (default role)
    """
    MASTER_ADMIN = "master_admin"
    ADMIN = "admin"
    DRIVER = "driver"
    PARENT = "parent"
