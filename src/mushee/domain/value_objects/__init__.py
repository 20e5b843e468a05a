"""Domain value objects."""

from dataclasses import dataclass
from uuid import UUID, uuid4


# Hey future me - IDs are tiny frozen dataclasses instead of bare UUIDs so a ScoreId can never
# be passed where a FeedbackId is expected. They're hashable (frozen=True), which the collection
# state machine relies on when it checks "is this score already in the list?".
@dataclass(frozen=True)
class ScoreId:
    """Unique identifier for a canonical score."""

    value: UUID

    @classmethod
    def generate(cls) -> "ScoreId":
        """Generate a new random score ID."""
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> "ScoreId":
        """Create ScoreId from string (raises ValueError on garbage)."""
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class FeedbackId:
    """Unique identifier for a suggestion feedback record."""

    value: UUID

    @classmethod
    def generate(cls) -> "FeedbackId":
        """Generate a new random feedback ID."""
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> "FeedbackId":
        """Create FeedbackId from string."""
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


# Users are owned by the external auth provider, so we only carry their opaque id around.
# No UUID parsing here - whatever the gateway puts in X-User-Id is the identity.
@dataclass(frozen=True)
class UserId:
    """Identifier of the user owning a collection."""

    value: str

    def __post_init__(self) -> None:
        """Validate user id."""
        if not self.value or not self.value.strip():
            raise ValueError("User id cannot be empty")
        if len(self.value) > 255:
            raise ValueError("User id cannot be longer than 255 characters")

    @classmethod
    def from_string(cls, value: str) -> "UserId":
        """Create UserId from a raw header value."""
        return cls(value=value.strip())

    def __str__(self) -> str:
        return self.value


__all__ = [
    "FeedbackId",
    "ScoreId",
    "UserId",
]
