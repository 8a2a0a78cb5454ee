"""
SQLAlchemy ORM models for database tables.

The table itself is created by database/init.sql; this mapping only has to
agree with it. For Pydantic read/request/response models, see schemas.py.
"""

from sqlalchemy import BigInteger, Column, Integer, Text

from msgcache.storage import Base


class Message(Base):
    """
    SQLAlchemy model for cached bot messages.

    Table: messages
    Primary Key: id (storage-assigned row id)
    Unique: message_id (caller-facing identity)
    """
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(BigInteger, nullable=False, unique=True, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(BigInteger, nullable=False)  # epoch milliseconds
    updated_at = Column(BigInteger, nullable=False)  # epoch milliseconds
