"""
Resolve a fan-out target into the concrete recipient set.
single:<principal id> -> that principal, if present in the roster snapshot
broadcast:all         -> every principal in the roster snapshot
"""

from typing import FrozenSet, Iterable, Optional
from uuid import UUID

from pydantic import BaseModel

from app.core.enums import TaskKind
from app.core.exceptions import EmptyRoster, InvalidTarget
from app.core.schemas import PrincipalRecord

SINGLE = "single"
BROADCAST = "broadcast"
BROADCAST_ALL = "broadcast:all"


class FanoutTarget(BaseModel):
    kind: TaskKind
    recipient_id: Optional[UUID] = None

    @classmethod
    def single(cls, recipient_id: Optional[UUID]) -> "FanoutTarget":
        return cls(kind=TaskKind.personal, recipient_id=recipient_id)

    @classmethod
    def broadcast(cls) -> "FanoutTarget":
        return cls(kind=TaskKind.broadcast)

    @classmethod
    def parse(cls, descriptor: str) -> "FanoutTarget":
        """Parse ``single:<uuid>`` or ``broadcast:all``."""
        scope, _, value = (descriptor or "").strip().partition(":")
        if scope == BROADCAST and value == "all":
            return cls.broadcast()
        if scope == SINGLE:
            if not value:
                raise InvalidTarget("single target requires a recipient id")
            try:
                return cls.single(UUID(value))
            except ValueError:
                raise InvalidTarget(f"Invalid recipient id: {value}")
        raise InvalidTarget(f"Unknown fan-out target: {descriptor!r}")

    def __str__(self) -> str:
        if self.kind == TaskKind.broadcast:
            return BROADCAST_ALL
        return f"{SINGLE}:{self.recipient_id or ''}"


def resolve_recipients(target: FanoutTarget, roster: Iterable[PrincipalRecord]) -> FrozenSet[UUID]:
    """Recipient ids for ``target`` over a roster snapshot. No side effects."""
    roster_ids = frozenset(p.id for p in roster)
    if target.kind == TaskKind.personal:
        if target.recipient_id is None:
            raise InvalidTarget("assigned_to is required for a personal task")
        if target.recipient_id not in roster_ids:
            raise InvalidTarget("Assigned user not found")
        return frozenset({target.recipient_id})
    if not roster_ids:
        raise EmptyRoster()
    return roster_ids
