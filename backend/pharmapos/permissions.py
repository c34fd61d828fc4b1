"""
Permission constants and role mappings.

WHY: Centralized permission definitions keep route guards consistent.
Roles are fixed (ADMIN, MEDICAL_OWNER, CASHIER); each maps to a static
set of permission codes.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Default role mappings follow principle of least privilege
- Admin has all permissions
"""

from .models.auth import ROLE_ADMIN, ROLE_MEDICAL_OWNER, ROLE_CASHIER


# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    """Permission categories for organization."""
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    SYSTEM = "SYSTEM"


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View product batches and quantities for the caller's store",
        PermissionCategory.INVENTORY
    ),
    (
        "RECEIVE_INVENTORY",
        "Receive Inventory",
        "Add product batches (replenishment) and update distributor totals",
        PermissionCategory.INVENTORY
    ),
    (
        "CREATE_SALE",
        "Create Sale",
        "Ring up a sale and decrement stock",
        PermissionCategory.SALES
    ),
    (
        "VIEW_SALES",
        "View Sales",
        "View sales history (cashiers see only their own sales)",
        PermissionCategory.SALES
    ),
    (
        "SYSTEM_ADMIN",
        "System Administration",
        "Cross-store administration",
        PermissionCategory.SYSTEM
    ),
]


# =============================================================================
# DEFAULT ROLE MAPPINGS
# =============================================================================

DEFAULT_ROLE_PERMISSIONS = {
    ROLE_ADMIN: [
        # Admin gets ALL permissions
        "VIEW_INVENTORY",
        "RECEIVE_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
        "SYSTEM_ADMIN",
    ],
    ROLE_MEDICAL_OWNER: [
        "VIEW_INVENTORY",
        "RECEIVE_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
    ],
    ROLE_CASHIER: [
        "VIEW_INVENTORY",
        "RECEIVE_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
    ],
}


# =============================================================================
# PERMISSION HELPERS
# =============================================================================

def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_role_permissions(role: str | None) -> set[str]:
    """Permission codes granted to a role (empty for unknown roles)."""
    return set(DEFAULT_ROLE_PERMISSIONS.get(role or "", []))


def role_has_permission(role: str | None, code: str) -> bool:
    return code in get_role_permissions(role)


def validate_permission_code(code):
    """Check if a permission code is valid."""
    return code in get_all_permission_codes()
