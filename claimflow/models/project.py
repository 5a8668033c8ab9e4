"""
Project Model
Claims are booked against a project
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime

from claimflow.config.database import Base
from claimflow.config.settings import settings


class Project(Base):
    """Project model"""
    __tablename__ = "projects"
    
    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    
    # Default site for the project; the "general" project has none
    site_location = Column(String(255), nullable=True)
    site_incharge_emp_code = Column(String(50), nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    claims = relationship("Claim", back_populates="project")
    
    def __repr__(self):
        return f"<Project {self.code}>"
    
    @property
    def is_general(self) -> bool:
        return self.code.lower() == settings.GENERAL_PROJECT_CODE
