"""
Claim Models
Expense claims and the line items they own
"""

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import enum

from claimflow.config.database import Base, string_enum


class ReviewStage(str, enum.Enum):
    """Sequential review stages"""
    COORDINATOR = "coordinator"
    HR = "hr"
    ACCOUNTS = "accounts"


class ClaimStatus(str, enum.Enum):
    """Claim status"""
    PENDING = "pending"
    COORDINATOR_APPROVED = "coordinator_approved"
    COORDINATOR_REJECTED = "coordinator_rejected"
    HR_APPROVED = "hr_approved"
    HR_REJECTED = "hr_rejected"
    ACCOUNTS_APPROVED = "accounts_approved"
    ACCOUNTS_REJECTED = "accounts_rejected"

    @property
    def stage(self) -> Optional[ReviewStage]:
        """Stage whose decision produced this status (None for pending)"""
        if self is ClaimStatus.PENDING:
            return None
        return ReviewStage(self.value.rsplit("_", 1)[0])

    @property
    def is_rejected(self) -> bool:
        return self.value.endswith("_rejected")


@dataclass(frozen=True)
class StageReview:
    """One stage's decision: who reviewed, when, and with what comment"""
    stage: ReviewStage
    reviewer_id: Optional[int]
    reviewed_at: Optional[datetime]
    comment: Optional[str]


class Claim(Base):
    """Expense claim model"""
    __tablename__ = "claims"

    id = Column(Integer, primary_key=True, index=True)

    # Submitter and project
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)

    # Site details, only for the general project
    site_location = Column(String(255), nullable=True)
    site_incharge_emp_code = Column(String(50), nullable=True)

    # Derived from the line items, recomputed on every write
    claim_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    # Workflow
    status = Column(string_enum(ClaimStatus), default=ClaimStatus.PENDING, nullable=False, index=True)

    coordinator_reviewed_by = Column(Integer, ForeignKey("employees.id"), nullable=True)
    coordinator_reviewed_at = Column(DateTime, nullable=True)
    coordinator_comment = Column(Text, nullable=True)

    hr_reviewed_by = Column(Integer, ForeignKey("employees.id"), nullable=True)
    hr_reviewed_at = Column(DateTime, nullable=True)
    hr_comment = Column(Text, nullable=True)

    accounts_reviewed_by = Column(Integer, ForeignKey("employees.id"), nullable=True)
    accounts_reviewed_at = Column(DateTime, nullable=True)
    accounts_comment = Column(Text, nullable=True)

    # Receipts
    travel_receipt_path = Column(String(500), nullable=True)
    hotel_receipt_path = Column(String(500), nullable=True)
    food_receipt_path = Column(String(500), nullable=True)
    special_approval_path = Column(String(500), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    submitter = relationship("Employee", back_populates="claims", foreign_keys=[employee_id])
    project = relationship("Project", back_populates="claims")
    coordinator_reviewer = relationship("Employee", foreign_keys=[coordinator_reviewed_by])
    hr_reviewer = relationship("Employee", foreign_keys=[hr_reviewed_by])
    accounts_reviewer = relationship("Employee", foreign_keys=[accounts_reviewed_by])

    travel_segments = relationship("TravelSegment", cascade="all, delete-orphan", order_by="TravelSegment.id")
    journey_allowances = relationship("JourneyAllowance", cascade="all, delete-orphan", order_by="JourneyAllowance.id")
    return_allowances = relationship("ReturnAllowance", cascade="all, delete-orphan", order_by="ReturnAllowance.id")
    stay_allowances = relationship("StayAllowance", cascade="all, delete-orphan", order_by="StayAllowance.id")
    hotel_expenses = relationship("HotelExpense", cascade="all, delete-orphan", order_by="HotelExpense.id")
    food_expenses = relationship("FoodExpense", cascade="all, delete-orphan", order_by="FoodExpense.id")

    history = relationship(
        "ClaimHistory",
        back_populates="claim",
        order_by="ClaimHistory.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Claim {self.id} - {self.status.value}>"

    # Stage triples

    def stage_review(self, stage: ReviewStage) -> StageReview:
        """Read the (reviewer, timestamp, comment) triple of a stage"""
        if stage is ReviewStage.COORDINATOR:
            return StageReview(stage, self.coordinator_reviewed_by, self.coordinator_reviewed_at, self.coordinator_comment)
        if stage is ReviewStage.HR:
            return StageReview(stage, self.hr_reviewed_by, self.hr_reviewed_at, self.hr_comment)
        return StageReview(stage, self.accounts_reviewed_by, self.accounts_reviewed_at, self.accounts_comment)

    def record_review(self, review: StageReview):
        """Write exactly one stage triple"""
        if review.stage is ReviewStage.COORDINATOR:
            self.coordinator_reviewed_by = review.reviewer_id
            self.coordinator_reviewed_at = review.reviewed_at
            self.coordinator_comment = review.comment
        elif review.stage is ReviewStage.HR:
            self.hr_reviewed_by = review.reviewer_id
            self.hr_reviewed_at = review.reviewed_at
            self.hr_comment = review.comment
        else:
            self.accounts_reviewed_by = review.reviewer_id
            self.accounts_reviewed_at = review.reviewed_at
            self.accounts_comment = review.comment

    def clear_reviews(self):
        """Null every stage triple, as on resubmission"""
        for stage in ReviewStage:
            self.record_review(StageReview(stage, None, None, None))

    def reviews(self) -> List[StageReview]:
        """Stage triples that have been written, in chain order"""
        return [review for review in map(self.stage_review, ReviewStage) if review.reviewer_id is not None]

    # Line items

    def line_items(self) -> "LineItems":
        return LineItems(
            travel=list(self.travel_segments),
            journey=list(self.journey_allowances),
            return_=list(self.return_allowances),
            stay=list(self.stay_allowances),
            hotel=list(self.hotel_expenses),
            food=list(self.food_expenses),
        )

    def replace_line_items(self, items: "LineItems"):
        """
        Replace every owned line-item collection wholesale

        Rows no longer referenced are deleted by the delete-orphan cascade
        when the session flushes, inside the caller's unit of work.
        """
        self.travel_segments = list(items.travel)
        self.journey_allowances = list(items.journey)
        self.return_allowances = list(items.return_)
        self.stay_allowances = list(items.stay)
        self.hotel_expenses = list(items.hotel)
        self.food_expenses = list(items.food)


@dataclass
class LineItems:
    """The six owned line-item collections of a claim"""
    travel: list = field(default_factory=list)
    journey: list = field(default_factory=list)
    return_: list = field(default_factory=list)
    stay: list = field(default_factory=list)
    hotel: list = field(default_factory=list)
    food: list = field(default_factory=list)

    @property
    def allowances(self) -> list:
        return [*self.journey, *self.return_, *self.stay]


# ============================================================================
# LINE ITEM COLUMNS (shared with the history snapshot tables)
# ============================================================================

class TravelColumns:
    travel_date = Column(Date, nullable=True)
    from_location = Column(String(255), nullable=True)
    to_location = Column(String(255), nullable=True)
    mode_of_transport = Column(String(100), nullable=True)
    fare_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))


class AllowanceColumns:
    scope = Column(String(100), nullable=True)
    from_date = Column(Date, nullable=True)
    to_date = Column(Date, nullable=True)
    no_of_days = Column(Integer, nullable=False, default=0)
    amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))


class StayBillColumns:
    from_date = Column(Date, nullable=True)
    to_date = Column(Date, nullable=True)
    sharing = Column(Integer, nullable=True)
    location = Column(String(255), nullable=True)
    bill_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))


class TravelSegment(TravelColumns, Base):
    """Travel segment with its fare"""
    __tablename__ = "travel_data"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False, index=True)


class JourneyAllowance(AllowanceColumns, Base):
    """Allowance for the outbound journey"""
    __tablename__ = "journey_allowance"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False, index=True)


class ReturnAllowance(AllowanceColumns, Base):
    """Allowance for the return journey"""
    __tablename__ = "return_allowance"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False, index=True)


class StayAllowance(AllowanceColumns, Base):
    """Allowance for days stayed on site"""
    __tablename__ = "stay_allowance"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False, index=True)


class HotelExpense(StayBillColumns, Base):
    """Hotel bill"""
    __tablename__ = "hotel_expenses"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False, index=True)


class FoodExpense(StayBillColumns, Base):
    """Food bill"""
    __tablename__ = "food_expenses"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False, index=True)
