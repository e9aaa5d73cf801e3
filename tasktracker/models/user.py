from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from tasktracker.database import Base


class User(Base):
    """Identity-provider subject, stored only so tasks have an author row."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False)

    tasks = relationship("Task", back_populates="author")
