"""Meeting topic model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.orm import Session
from qnnect.database import Base


MAX_TOPIC_NAME_LENGTH = 100
MAX_TOPIC_DESCRIPTION_LENGTH = 500

# (name, advisor only)
DEFAULT_TOPICS = (
    ("Staj görüşmesi", False),
    ("Ders destek talebi", False),
    ("Bitirme projesi danışmanlığı", True),
    ("Kariyer gelişimi/mentorluk", False),
    ("Akademik danışmanlık", True),
    ("Ders değerlendirme görüşmesi", False),
)


class Topic(Base):
    """Represents a meeting topic students pick when booking."""
    __tablename__ = "topics"

    id = Column(Integer, primary_key=True)
    name = Column(String(MAX_TOPIC_NAME_LENGTH), unique=True, index=True, nullable=False)
    description = Column(String(MAX_TOPIC_DESCRIPTION_LENGTH))
    is_advisor_only = Column(Boolean, default=False)  # only the student's own advisor can be booked
    is_active = Column(Boolean, default=True)
    order = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


def active_topics(db: Session) -> list[Topic]:
    return db.query(Topic).filter(Topic.is_active.is_(True)).order_by(Topic.order.asc(), Topic.name.asc()).all()


def next_topic_order(db: Session) -> int:
    return (db.query(func.max(Topic.order)).scalar() or 0) + 1


def seed_default_topics(db: Session) -> int:
    """Fill an empty topics table with the defaults; returns how many were added."""
    if db.query(Topic.id).first() is not None:
        return 0
    for order, (name, is_advisor_only) in enumerate(DEFAULT_TOPICS, start=1):
        db.add(Topic(name=name, is_advisor_only=is_advisor_only, is_active=True, order=order))
    db.commit()
    return len(DEFAULT_TOPICS)
