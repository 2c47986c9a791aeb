import csv
import io

from qnnect.models.appointment import Appointment

APPOINTMENT_CSV_HEADERS = (
    'ID',
    'Öğrenci Adı',
    'Öğrenci Numarası',
    'Öğrenci E-posta',
    'Görüşme Konusu',
    'Açıklama',
    'Tarih',
    'Başlangıç Saati',
    'Bitiş Saati',
    'Durum',
    'Öğretim Elemanı',
    'Bölüm',
    'Oluşturulma Tarihi',
)


def appointments_csv(appointments: list[Appointment], departments: dict[int, str] | None = None) -> str:
    """CSV of appointments with Turkish headers; ``departments`` maps faculty id to department."""
    departments = departments or {}
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(APPOINTMENT_CSV_HEADERS)
    for appointment in appointments:
        writer.writerow((
            appointment.id,
            appointment.student_name,
            appointment.student_number,
            appointment.student_email,
            appointment.topic,
            appointment.description or '',
            appointment.date.isoformat() if appointment.date else '',
            appointment.start_time,
            appointment.end_time,
            appointment.status_label,
            appointment.faculty_name or '',
            departments.get(appointment.faculty_id, ''),
            appointment.created_at.strftime('%Y-%m-%d %H:%M') if appointment.created_at else '',
        ))
    # BOM so spreadsheet apps detect UTF-8.
    return '\ufeff' + buffer.getvalue()
