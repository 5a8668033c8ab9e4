"""
History Recorder
Append-only claim audit trail with point-in-time line-item snapshots
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from claimflow.models.claim import Claim
from claimflow.models.history import (
    ClaimHistory, TravelSnapshot, JourneySnapshot, ReturnSnapshot,
    StaySnapshot, HotelSnapshot, FoodSnapshot,
)
from claimflow.utils.logger import setup_logger

logger = setup_logger()

SYNTHETIC_COMMENT_PREFIX = "Status changed from"

_TRAVEL_FIELDS = ("travel_date", "from_location", "to_location", "mode_of_transport", "fare_amount")
_ALLOWANCE_FIELDS = ("scope", "from_date", "to_date", "no_of_days", "amount")
_STAY_BILL_FIELDS = ("from_date", "to_date", "sharing", "location", "bill_amount")


def _copy(rows, snapshot_cls, fields):
    return [snapshot_cls(**{name: getattr(row, name) for name in fields}) for row in rows]


class HistoryService:
    """History recorder"""

    def latest_entry(self, db: Session, claim_id: int) -> Optional[ClaimHistory]:
        return (
            db.query(ClaimHistory)
            .filter(ClaimHistory.claim_id == claim_id)
            .order_by(ClaimHistory.action_at.desc(), ClaimHistory.id.desc())
            .first()
        )

    def append(
        self,
        db: Session,
        claim: Claim,
        action: str,
        previous_status: Optional[str],
        new_status: str,
        comment: Optional[str],
        actor_id: int,
    ) -> Optional[ClaimHistory]:
        """
        Append a history entry with a snapshot of the claim's current line items

        Nothing is written when the claim's latest entry has the same
        (action, new_status, comment). Runs inside the caller's unit of work.

        Args:
            db: Database session
            claim: Claim the entry belongs to (line items already replaced)
            action: submitted / resubmitted / approved / rejected
            previous_status: Status before the change (None on first submit)
            new_status: Status after the change
            comment: Reviewer or submitter comment
            actor_id: Employee ID who acted

        Returns:
            ClaimHistory: The new entry, or None if suppressed as a duplicate
        """
        latest = self.latest_entry(db, claim.id)
        if latest is not None and (latest.action, latest.new_status, latest.comment) == (action, new_status, comment):
            logger.info(f"Duplicate history entry suppressed for claim {claim.id}: {action} -> {new_status}")
            return None

        items = claim.line_items()
        entry = ClaimHistory(
            claim_id=claim.id,
            employee_id=claim.employee_id,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            comment=comment,
            action_by=actor_id,
            action_at=datetime.utcnow(),
            travel_snapshot=_copy(items.travel, TravelSnapshot, _TRAVEL_FIELDS),
            journey_snapshot=_copy(items.journey, JourneySnapshot, _ALLOWANCE_FIELDS),
            return_snapshot=_copy(items.return_, ReturnSnapshot, _ALLOWANCE_FIELDS),
            stay_snapshot=_copy(items.stay, StaySnapshot, _ALLOWANCE_FIELDS),
            hotel_snapshot=_copy(items.hotel, HotelSnapshot, _STAY_BILL_FIELDS),
            food_snapshot=_copy(items.food, FoodSnapshot, _STAY_BILL_FIELDS),
        )
        db.add(entry)
        db.flush()
        return entry

    def list_entries(self, db: Session, claim_id: int, with_snapshots: bool = False) -> List[ClaimHistory]:
        """
        History of a claim, newest first, without synthetic status-change entries

        Args:
            db: Database session
            claim_id: Claim ID
            with_snapshots: Also load each entry's line-item snapshot

        Returns:
            List[ClaimHistory]
        """
        query = (
            db.query(ClaimHistory)
            .options(joinedload(ClaimHistory.actor))
            .filter(ClaimHistory.claim_id == claim_id)
            .filter(
                (ClaimHistory.comment.is_(None))
                | (~ClaimHistory.comment.startswith(SYNTHETIC_COMMENT_PREFIX, autoescape=True))
            )
            .order_by(ClaimHistory.action_at.desc(), ClaimHistory.id.desc())
        )
        if with_snapshots:
            query = query.options(
                selectinload(ClaimHistory.travel_snapshot),
                selectinload(ClaimHistory.journey_snapshot),
                selectinload(ClaimHistory.return_snapshot),
                selectinload(ClaimHistory.stay_snapshot),
                selectinload(ClaimHistory.hotel_snapshot),
                selectinload(ClaimHistory.food_snapshot),
            )
        return query.all()


# Create singleton instance
history_service = HistoryService()
