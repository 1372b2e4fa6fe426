"""
Acting-user identity and authorization checks.

Identity is established upstream; the lifecycle only needs the user id
and whether the caller acts as a moderator.
"""

import enum
from dataclasses import dataclass
from typing import Union
from uuid import UUID

from group_scheduler.models.events import Event
from group_scheduler.models.recurring import RecurringEventTemplate
from group_scheduler.services.errors import UnauthorizedError

# Anything with an organizer_id
Organized = Union[Event, RecurringEventTemplate]


class ActorRole(str, enum.Enum):
    MEMBER = "member"
    MODERATOR = "moderator"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """User performing an operation."""

    user_id: UUID
    role: ActorRole = ActorRole.MEMBER

    @property
    def is_moderator(self) -> bool:
        return self.role in (ActorRole.MODERATOR, ActorRole.ADMIN)

    def is_organizer_of(self, item: Organized) -> bool:
        return self.user_id == item.organizer_id


def require_organizer(item: Organized, actor: Actor, action: str) -> None:
    """
    Raises:
        UnauthorizedError: If the actor is not the organizer
    """
    if not actor.is_organizer_of(item):
        raise UnauthorizedError(f"Only the organizer can {action}")


def require_organizer_or_moderator(item: Organized, actor: Actor, action: str) -> None:
    """
    Raises:
        UnauthorizedError: If the actor is neither organizer nor moderator
    """
    if not (actor.is_organizer_of(item) or actor.is_moderator):
        raise UnauthorizedError(f"Only the organizer or a moderator can {action}")
