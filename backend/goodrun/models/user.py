from sqlalchemy import Column, Integer, Text
from sqlalchemy.orm import relationship
from goodrun.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text)
    email = Column(Text, nullable=False, unique=True)
    role = Column(Text, nullable=False)
    password_hash = Column(Text, nullable=False)
    phone_no = Column(Text)
    birthday = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    assigned_jobs = relationship("Job", back_populates="assignee")
