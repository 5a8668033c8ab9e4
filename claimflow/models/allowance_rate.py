"""
Allowance Rate Model
Reference per-day allowance amounts by designation and scope
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from claimflow.config.database import Base


class AllowanceScope:
    """Well-known allowance scopes"""
    DAILY_METRO = "Daily Allowance Metro"
    DAILY_NON_METRO = "Daily Allowance Non-Metro"
    SITE_FIXED = "Site Allowance"


class AllowanceRate(Base):
    """
    Allowance rate model
    
    Informational only: submitted allowance amounts are not checked
    against these rates.
    """
    __tablename__ = "allowance_rates"
    __table_args__ = (
        UniqueConstraint("designation_id", "scope", name="uq_allowance_rate_designation_scope"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    designation_id = Column(Integer, ForeignKey("designations.id"), nullable=False, index=True)
    scope = Column(String(100), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    designation = relationship("Designation", back_populates="allowance_rates")
    
    def __repr__(self):
        return f"<AllowanceRate {self.designation_id} - {self.scope}>"
