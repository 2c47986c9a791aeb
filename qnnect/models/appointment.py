"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String
from qnnect.database import Base


STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_CANCELLED = "cancelled"
STATUS_NO_RESPONSE = "no_response"
STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, STATUS_CANCELLED, STATUS_NO_RESPONSE)

# Requests in these states hold their slot.
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_APPROVED)

STATUS_LABELS = {
    STATUS_PENDING: "Beklemede",
    STATUS_APPROVED: "Onaylandı",
    STATUS_REJECTED: "Reddedildi",
    STATUS_CANCELLED: "İptal Edildi",
    STATUS_NO_RESPONSE: "Öğretim Üyesi Cevaplamadı",
}


class Appointment(Base):
    """Represents a student's booking request with a faculty member."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    student_name = Column(String, nullable=False)
    student_number = Column(String, nullable=False)
    student_email = Column(String, index=True, nullable=False)
    faculty_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    faculty_name = Column(String)
    topic = Column(String, nullable=False)
    description = Column(String)
    date = Column(Date, nullable=False)
    start_time = Column(String, nullable=False)  # HH:MM
    end_time = Column(String, nullable=False)  # HH:MM
    status = Column(String, default=STATUS_PENDING)
    rejection_reason = Column(String)
    google_event_id = Column(String)
    google_meet_link = Column(String)
    cancelled_by = Column(String)  # student/faculty/admin/system
    cancelled_at = Column(DateTime)
    cancellation_reason = Column(String)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, self.status)

    @property
    def time_range(self) -> str:
        return f"{self.start_time} - {self.end_time}"
