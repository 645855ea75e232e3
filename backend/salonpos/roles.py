# Overview: Job roles, permission tiers and the RoleSet value type.

"""
Roles are never exclusive: an employee may be a Technician and a Receptionist
at the same time, and every rule evaluates the full set.

The permission tier is a coarse, single-valued grant used for screens such
as the admin review of rejected tickets. Approval eligibility looks at job
roles only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


class Role:
    """Job roles an employee can hold."""
    TECHNICIAN = "Technician"
    SPA_EXPERT = "Spa Expert"
    RECEPTIONIST = "Receptionist"
    SUPERVISOR = "Supervisor"
    MANAGER = "Manager"
    OWNER = "Owner"


ALL_ROLES = (
    Role.TECHNICIAN,
    Role.SPA_EXPERT,
    Role.RECEPTIONIST,
    Role.SUPERVISOR,
    Role.MANAGER,
    Role.OWNER,
)


class PermissionTier:
    """Coarse permission tier (one per employee)."""
    TECHNICIAN = "Technician"
    RECEPTIONIST = "Receptionist"
    ADMIN = "Admin"


ALL_TIERS = (PermissionTier.TECHNICIAN, PermissionTier.RECEPTIONIST, PermissionTier.ADMIN)

# Roles that put a technician on the store's queue board
SERVICE_ROLES = frozenset({Role.TECHNICIAN, Role.SUPERVISOR, Role.SPA_EXPERT})

SUPERVISOR_OR_HIGHER = frozenset({Role.SUPERVISOR, Role.MANAGER, Role.OWNER})
MANAGEMENT = frozenset({Role.MANAGER, Role.OWNER})


class InvalidRoleError(ValueError):
    """Raised when a role or tier name is not recognised."""
    pass


@dataclass(frozen=True)
class RoleSet:
    """Immutable set of job roles plus the permission tier."""
    roles: frozenset = frozenset()
    tier: str = PermissionTier.TECHNICIAN

    @classmethod
    def of(cls, roles: Iterable[str] | None, tier: str | None = None) -> "RoleSet":
        names = frozenset(roles or ())
        unknown = names.difference(ALL_ROLES)
        if unknown:
            raise InvalidRoleError(f"Unknown role(s): {', '.join(sorted(unknown))}")
        tier = tier or PermissionTier.TECHNICIAN
        if tier not in ALL_TIERS:
            raise InvalidRoleError(f"Unknown permission tier: {tier}")
        return cls(roles=names, tier=tier)

    def has(self, *roles: str) -> bool:
        """True when every given role is held."""
        return all(role in self.roles for role in roles)

    def has_any(self, roles: Iterable[str]) -> bool:
        return any(role in self.roles for role in roles)

    @property
    def is_supervisor_or_higher(self) -> bool:
        return self.has_any(SUPERVISOR_OR_HIGHER)

    @property
    def is_management(self) -> bool:
        return self.has_any(MANAGEMENT)

    @property
    def is_admin(self) -> bool:
        return self.tier == PermissionTier.ADMIN or Role.OWNER in self.roles

    @property
    def performs_services(self) -> bool:
        return self.has_any(SERVICE_ROLES)

    def to_list(self) -> list[str]:
        """Roles in canonical order, for JSON snapshots."""
        return [role for role in ALL_ROLES if role in self.roles]
