"""
Claim Schemas - Pydantic V2
Request payloads for submit, edit and review, and the response shapes
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Literal, Union
from datetime import date, datetime
from decimal import Decimal

from claimflow.utils.helpers import parse_date


# Amounts and day counts arrive as numbers or strings from the form payload;
# unparseable values are tolerated here and clamped to zero by the totals.
LenientNumber = Optional[Union[float, int, str]]


class LineItemIn(BaseModel):
    """Base for line-item rows with lenient dates"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class TravelSegmentIn(LineItemIn):
    """One travel segment"""
    travel_date: Optional[date] = None
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    mode_of_transport: Optional[str] = None
    fare_amount: LenientNumber = None

    @field_validator("travel_date", mode="before")
    @classmethod
    def lenient_date(cls, value):
        return parse_date(value)


class AllowanceEntryIn(LineItemIn):
    """One journey, return or stay allowance row"""
    scope: Optional[str] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    no_of_days: LenientNumber = None
    amount: LenientNumber = None

    @field_validator("from_date", "to_date", mode="before")
    @classmethod
    def lenient_date(cls, value):
        return parse_date(value)


class StayBillIn(LineItemIn):
    """One hotel or food bill"""
    from_date: Optional[date] = Field(None, alias="fromDate")
    to_date: Optional[date] = Field(None, alias="toDate")
    sharing: Optional[int] = None
    location: Optional[str] = None
    bill_amount: LenientNumber = Field(None, alias="billAmount")

    @field_validator("from_date", "to_date", mode="before")
    @classmethod
    def lenient_date(cls, value):
        return parse_date(value)

    @field_validator("sharing", mode="before")
    @classmethod
    def lenient_sharing(cls, value):
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None


class ClaimPayload(BaseModel):
    """Submission payload (the JSON `data` part of the multipart form)"""
    model_config = ConfigDict(extra="ignore")

    project_code: str = Field(..., min_length=1)
    site_location: Optional[str] = None
    site_incharge_emp_code: Optional[str] = None

    travel_data: List[TravelSegmentIn] = Field(default_factory=list)
    journey_allowance: List[AllowanceEntryIn] = Field(default_factory=list)
    return_allowance: List[AllowanceEntryIn] = Field(default_factory=list)
    stay_allowance: List[AllowanceEntryIn] = Field(default_factory=list)
    hotel_expenses: List[StayBillIn] = Field(default_factory=list)
    food_expenses: List[StayBillIn] = Field(default_factory=list)

    @field_validator(
        "travel_data", "journey_allowance", "return_allowance",
        "stay_allowance", "hotel_expenses", "food_expenses",
        mode="before",
    )
    @classmethod
    def null_to_empty(cls, value):
        return [] if value is None else value


class ClaimEdit(ClaimPayload):
    """Edit/resubmission payload"""
    comment: Optional[str] = None


class ReviewActionIn(BaseModel):
    """Review decision"""
    action: Literal["approve", "reject"]
    comment: Optional[str] = None


# ============================================================================
# RESPONSES
# ============================================================================

class TravelSegmentOut(BaseModel):
    id: int
    travel_date: Optional[date] = None
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    mode_of_transport: Optional[str] = None
    fare_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class AllowanceEntryOut(BaseModel):
    id: int
    scope: Optional[str] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    no_of_days: int
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class StayBillOut(BaseModel):
    id: int
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    sharing: Optional[int] = None
    location: Optional[str] = None
    bill_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class GroupedAllowance(BaseModel):
    """Allowance rows of one kind grouped by scope"""
    scope: Optional[str] = None
    total_days: int
    amount_per_day: Decimal
    total_amount: Decimal
    entries: List[AllowanceEntryOut]


class ScopeTotal(BaseModel):
    scope: Optional[str] = None
    total_days: int


class AllowanceRateView(BaseModel):
    scope: str
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class CoordinatorView(BaseModel):
    id: int
    emp_code: str
    full_name: str
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ClaimSummary(BaseModel):
    """Claim row as shown in lists"""
    id: int
    employee_id: int
    emp_code: str
    employee_name: str
    department: Optional[str] = None
    project_code: str
    project_name: str
    site_location: Optional[str] = None
    site_incharge_emp_code: Optional[str] = None
    claim_amount: Decimal
    status: str

    coordinator_reviewed_by: Optional[int] = None
    coordinator_reviewed_at: Optional[datetime] = None
    coordinator_comment: Optional[str] = None
    hr_reviewed_by: Optional[int] = None
    hr_reviewed_at: Optional[datetime] = None
    hr_comment: Optional[str] = None
    accounts_reviewed_by: Optional[int] = None
    accounts_reviewed_at: Optional[datetime] = None
    accounts_comment: Optional[str] = None

    travel_receipt_path: Optional[str] = None
    hotel_receipt_path: Optional[str] = None
    food_receipt_path: Optional[str] = None
    special_approval_path: Optional[str] = None

    created_at: datetime
    updated_at: Optional[datetime] = None


class ClaimDetail(ClaimSummary):
    """Claim with its line items and reference views"""
    travel_data: List[TravelSegmentOut]
    journey_allowance: List[AllowanceEntryOut]
    return_allowance: List[AllowanceEntryOut]
    stay_allowance: List[AllowanceEntryOut]
    hotel_expenses: List[StayBillOut]
    food_expenses: List[StayBillOut]

    journey_allowance_grouped: List[GroupedAllowance]
    return_allowance_grouped: List[GroupedAllowance]
    stay_allowance_grouped: List[GroupedAllowance]
    allowance_scope_totals: List[ScopeTotal]

    allowance_rates: List[AllowanceRateView]
    coordinators: List[CoordinatorView]


class HistoryEntryOut(BaseModel):
    id: int
    claim_id: int
    action: str
    previous_status: Optional[str] = None
    new_status: str
    comment: Optional[str] = None
    action_by: int
    action_at: datetime
    actor_name: Optional[str] = None
    actor_emp_code: Optional[str] = None
    actor_role: Optional[str] = None


class HistoryEntryWithData(HistoryEntryOut):
    travel_data: List[TravelSegmentOut]
    journey_allowance: List[AllowanceEntryOut]
    return_allowance: List[AllowanceEntryOut]
    stay_allowance: List[AllowanceEntryOut]
    hotel_expenses: List[StayBillOut]
    food_expenses: List[StayBillOut]
