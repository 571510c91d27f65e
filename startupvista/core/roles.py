"""
StartupVista - Roles and Providers
Closed sets shared by the token codec, the credential store and the routers.
"""

from enum import Enum
from typing import Optional


class Role(str, Enum):
    """
    Account role, chosen at sign-up and never changed afterwards.
    Determines which profile kind and which marketplace actions apply.
    """
    STARTUP = "startup"        # Lists funding opportunities
    INVESTOR = "investor"      # Expresses interest in posts
    CONSULTANT = "consultant"  # Lists seed opportunities on behalf of startups

    @classmethod
    def parse(cls, value: "Role | str | None") -> Optional["Role"]:
        """Return the matching role, or None for a missing or unknown value."""
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class AuthProvider(str, Enum):
    """How an identity proves who it is."""
    LOCAL = "local"          # Stored password hash
    FEDERATED = "federated"  # Firebase ID token


def role_values(roles) -> list[str]:
    """Plain string values for messages and claims."""
    return [r.value for r in roles]
