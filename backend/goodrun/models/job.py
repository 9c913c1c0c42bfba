from sqlalchemy import Boolean, Column, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from goodrun.database import Base

STAGES = ("available", "reserved", "in_delivery", "completed", "cancelled_in_delivery")


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organisation_id = Column(Integer, ForeignKey("organisations.id"), nullable=False)
    assigned_to = Column(Integer, ForeignKey("users.id"))
    name = Column(Text)
    address = Column(Text)
    weight = Column(Float)
    value = Column(Float)
    size = Column(Text, default="small")
    intake_priority = Column(Text, default="medium")
    progress_stage = Column(Text, nullable=False, default="available")
    follow_up = Column(Boolean, nullable=False, default=False)
    deadline_date = Column(Text)
    dropoff_date = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    organisation = relationship("Organisation", back_populates="jobs")
    assignee = relationship("User", back_populates="assigned_jobs")
    events = relationship("JobEvent", back_populates="job", cascade="all, delete-orphan")
