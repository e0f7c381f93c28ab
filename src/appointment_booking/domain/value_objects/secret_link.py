"""Secret link value object granting access to unpublished appointments."""

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

TOKEN_BYTES = 16


@dataclass(frozen=True)
class SecretLink:
    """Unlisted access token with optional expiry time and booking capacity."""

    token: str
    expiry_time: Optional[datetime] = None
    expiry_capacity: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate link."""
        if not self.token:
            raise ValueError("Secret link token cannot be empty")
        if self.expiry_capacity is not None and self.expiry_capacity < 1:
            raise ValueError("Secret link capacity must be at least 1")

    @classmethod
    def generate(
        cls,
        expiry_time: Optional[datetime] = None,
        expiry_capacity: Optional[int] = None,
        nbytes: int = TOKEN_BYTES
    ) -> "SecretLink":
        """Issue a new random link."""
        return cls(token=secrets.token_hex(nbytes), expiry_time=expiry_time, expiry_capacity=expiry_capacity)

    def matches(self, token: Optional[str]) -> bool:
        """Constant-time token comparison."""
        if not token:
            return False
        return secrets.compare_digest(self.token, token)

    def is_expired(self, now: datetime) -> bool:
        """Check whether the expiry time has passed."""
        return self.expiry_time is not None and now > self.expiry_time

    def is_exhausted(self, bookings_count: int) -> bool:
        """Check whether the link has reached its booking capacity."""
        return self.expiry_capacity is not None and bookings_count >= self.expiry_capacity
