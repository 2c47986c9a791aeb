"""System setting model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Session
from qnnect.database import Base


APPOINTMENT_TIMEOUT_HOURS = "appointment_timeout_hours"
SLOT_DURATION = "slot_duration"


class SystemSetting(Base):
    """Represents an admin-editable key/value setting."""
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, index=True, nullable=False)
    value = Column(JSON)
    description = Column(String)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    updated_by = Column(Integer, ForeignKey("users.id"))


def get_setting(db: Session, key: str, default=None):
    setting = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    if setting is None or setting.value is None:
        return default
    return setting.value


def set_setting(db: Session, key: str, value, user_id: int | None = None, description: str = "") -> SystemSetting:
    setting = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    if setting is None:
        setting = SystemSetting(key=key)
        db.add(setting)
    setting.value = value
    setting.updated_by = user_id
    setting.updated_at = datetime.now()
    if description:
        setting.description = description
    db.commit()
    db.refresh(setting)
    return setting
