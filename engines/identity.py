"""Identity provider bound from configuration."""
from typing import Optional

from orchestrator.models import Identity


class StaticIdentityProvider:
    """Returns the configured user, or None when no user is configured."""

    def __init__(self, user_id: Optional[str] = None, display_name: Optional[str] = None):
        self._identity = Identity(user_id=user_id, display_name=display_name) if user_id else None

    def current_user(self) -> Optional[Identity]:
        return self._identity
