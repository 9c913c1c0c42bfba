from sqlalchemy import Column, Integer, Text
from sqlalchemy.orm import relationship
from goodrun.database import Base


class Organisation(Base):
    __tablename__ = "organisations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    contact_no = Column(Text)
    office_hours = Column(Text)
    address = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    jobs = relationship("Job", back_populates="organisation")
