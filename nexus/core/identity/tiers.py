from __future__ import annotations

from typing import Iterable, Optional

from nexus.core.identity.models import Operator, PermissionTier, Session


class TierPolicy:
    """Maps an authenticated identity to its permission tier; configuration is the only source."""

    def __init__(self, *, root_identities: Iterable[str] = (), elevated_identities: Iterable[str] = ()):
        self.root_identities = frozenset(str(r) for r in root_identities)
        self.elevated_identities = frozenset(str(e) for e in elevated_identities) | self.root_identities

    def tier_for(self, identity_ref: str, email: Optional[str] = None) -> PermissionTier:
        if str(identity_ref) in self.elevated_identities or (email and email in self.elevated_identities):
            return PermissionTier.elevated
        return PermissionTier.standard

    def operator_for(self, session: Session) -> Operator:
        return Operator(
            identity_ref=session.identity_ref,
            display_name=session.display_name or session.email or "",
            tier=self.tier_for(session.identity_ref, session.email),
        )
