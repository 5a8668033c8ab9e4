"""
Claim History Models
Append-only audit trail of claim state changes, with a copy of the
claim's line items taken when each entry was written
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from claimflow.config.database import Base
from claimflow.models.claim import TravelColumns, AllowanceColumns, StayBillColumns


class HistoryAction:
    """History entry actions"""
    SUBMITTED = "submitted"
    RESUBMITTED = "resubmitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class ClaimHistory(Base):
    """
    History entry model

    Rows are never updated or deleted once written.
    """
    __tablename__ = "claim_history"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False)

    action = Column(String(30), nullable=False)
    previous_status = Column(String(30), nullable=True)
    new_status = Column(String(30), nullable=False)
    comment = Column(Text, nullable=True)

    action_by = Column(Integer, ForeignKey("employees.id"), nullable=False)
    action_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    claim = relationship("Claim", back_populates="history")
    actor = relationship("Employee", foreign_keys=[action_by])

    travel_snapshot = relationship("TravelSnapshot", cascade="all, delete-orphan", order_by="TravelSnapshot.id")
    journey_snapshot = relationship("JourneySnapshot", cascade="all, delete-orphan", order_by="JourneySnapshot.id")
    return_snapshot = relationship("ReturnSnapshot", cascade="all, delete-orphan", order_by="ReturnSnapshot.id")
    stay_snapshot = relationship("StaySnapshot", cascade="all, delete-orphan", order_by="StaySnapshot.id")
    hotel_snapshot = relationship("HotelSnapshot", cascade="all, delete-orphan", order_by="HotelSnapshot.id")
    food_snapshot = relationship("FoodSnapshot", cascade="all, delete-orphan", order_by="FoodSnapshot.id")

    def __repr__(self):
        return f"<ClaimHistory {self.claim_id} {self.action} -> {self.new_status}>"


class TravelSnapshot(TravelColumns, Base):
    __tablename__ = "travel_data_history"

    id = Column(Integer, primary_key=True, index=True)
    history_id = Column(Integer, ForeignKey("claim_history.id", ondelete="CASCADE"), nullable=False, index=True)


class JourneySnapshot(AllowanceColumns, Base):
    __tablename__ = "journey_allowance_history"

    id = Column(Integer, primary_key=True, index=True)
    history_id = Column(Integer, ForeignKey("claim_history.id", ondelete="CASCADE"), nullable=False, index=True)


class ReturnSnapshot(AllowanceColumns, Base):
    __tablename__ = "return_allowance_history"

    id = Column(Integer, primary_key=True, index=True)
    history_id = Column(Integer, ForeignKey("claim_history.id", ondelete="CASCADE"), nullable=False, index=True)


class StaySnapshot(AllowanceColumns, Base):
    __tablename__ = "stay_allowance_history"

    id = Column(Integer, primary_key=True, index=True)
    history_id = Column(Integer, ForeignKey("claim_history.id", ondelete="CASCADE"), nullable=False, index=True)


class HotelSnapshot(StayBillColumns, Base):
    __tablename__ = "hotel_expenses_history"

    id = Column(Integer, primary_key=True, index=True)
    history_id = Column(Integer, ForeignKey("claim_history.id", ondelete="CASCADE"), nullable=False, index=True)


class FoodSnapshot(StayBillColumns, Base):
    __tablename__ = "food_expenses_history"

    id = Column(Integer, primary_key=True, index=True)
    history_id = Column(Integer, ForeignKey("claim_history.id", ondelete="CASCADE"), nullable=False, index=True)
