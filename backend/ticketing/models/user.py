"""
User identity reference.

Accounts, passwords and sessions live in the auth service. The booking
engine only needs a row to hang orders and tickets off.
"""

from sqlalchemy import Column, Integer, String, Boolean

from ticketing.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
