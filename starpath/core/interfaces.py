"""
Service Contracts and Interfaces.

Defines protocols for the collaborators the engine consumes but does not own.
These contracts prevent coupling while enabling clean communication between modules.
"""

from typing import Protocol

from starpath.rewards.schemas import StatsDelta


class StatsSink(Protocol):
    """Child profile store: receives one delta per successful grant."""

    async def apply_stats_delta(self, child_id: str, delta: StatsDelta) -> None:
        """Apply a star/badge delta to the child's profile stats."""
        ...


class ModerationGateway(Protocol):
    """Moderation subsystem: read-only review outcome for audio submissions."""

    async def is_submission_approved(self, child_id: str, content_item_id: str) -> bool:
        """Return True only when the child's submission has been approved."""
        ...
