from sqlalchemy import Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from goodrun.database import Base


class JobEvent(Base):
    __tablename__ = "job_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    event = Column(Text, nullable=False)
    from_stage = Column(Text)
    to_stage = Column(Text, nullable=False)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    occurred_at = Column(Text, nullable=False)

    job = relationship("Job", back_populates="events")
