"""
Caller context.

Every service operation receives the acting user's identity and tenant
explicitly instead of reading ambient request state.

`role` is the caller's role inside their company. Platform-wide super admin
status is resolved separately (is_super_admin RPC) and never derived from the
company role.
"""

from dataclasses import dataclass
from typing import Optional

ADMIN_ROLES = frozenset({"owner", "admin"})


@dataclass(frozen=True)
class UserContext:
    user_id: str
    company_id: Optional[str] = None
    role: str = "member"
    super_admin: bool = False

    @property
    def is_admin(self) -> bool:
        return self.super_admin or self.role in ADMIN_ROLES

    @property
    def is_super_admin(self) -> bool:
        return self.super_admin
