"""Printable A4 profile card with the faculty member's booking QR code."""

import io
import logging
from xml.sax.saxutils import escape

from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from qnnect.core import config
from qnnect.models.user import DEFAULT_TITLE, User
from qnnect.scheduling.availability import day_display_name, is_bookable
from qnnect.services.qr_codes import appointment_url, qr_png

logger = logging.getLogger(__name__)

PRIMARY_COLOR = HexColor('#1e3a8a')
MUTED_COLOR = HexColor('#4b5563')
GRID_COLOR = HexColor('#d1d5db')
CARD_FONT = 'QnnectSans'


def _font_names() -> tuple[str, str]:
    """Regular and bold font names; Turkish glyphs need a TTF set via PDF_FONT_PATH."""
    if not config.PDF_FONT_PATH:
        return 'Helvetica', 'Helvetica-Bold'
    if CARD_FONT not in pdfmetrics.getRegisteredFontNames():
        try:
            pdfmetrics.registerFont(TTFont(CARD_FONT, config.PDF_FONT_PATH))
        except (OSError, TTFError):
            logger.exception('Could not load PDF font from %s; using Helvetica', config.PDF_FONT_PATH)
            return 'Helvetica', 'Helvetica-Bold'
    return CARD_FONT, CARD_FONT


def _styles() -> dict[str, ParagraphStyle]:
    regular, bold = _font_names()
    base = getSampleStyleSheet()
    return {
        'title': ParagraphStyle(
            name='CardTitle', parent=base['Title'], fontName=bold, fontSize=20,
            textColor=PRIMARY_COLOR, alignment=TA_CENTER, spaceAfter=6,
        ),
        'subtitle': ParagraphStyle(
            name='CardSubtitle', parent=base['Normal'], fontName=regular, fontSize=12,
            textColor=MUTED_COLOR, alignment=TA_CENTER, spaceAfter=4,
        ),
        'body': ParagraphStyle(
            name='CardBody', parent=base['Normal'], fontName=regular, fontSize=10, alignment=TA_CENTER,
        ),
        'heading': ParagraphStyle(
            name='CardHeading', parent=base['Heading2'], fontName=bold, fontSize=13,
            textColor=PRIMARY_COLOR, spaceBefore=12, spaceAfter=6,
        ),
        'cell': ParagraphStyle(name='CardCell', parent=base['Normal'], fontName=regular, fontSize=9),
    }


def _schedule_rows(user: User) -> list[tuple[str, str]]:
    rows = []
    for day in user.availability or []:
        if not day.get('isActive'):
            continue
        ranges = [f"{slot['start']}-{slot['end']}" for slot in day.get('timeSlots') or [] if is_bookable(slot)]
        if ranges:
            rows.append((day_display_name(day['day']), ', '.join(ranges)))
    return rows


def build_profile_card(user: User, include_schedule: bool = True) -> bytes:
    styles = _styles()
    url = appointment_url(user.slug)
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=2 * cm,
        leftMargin=2 * cm,
        topMargin=2 * cm,
        bottomMargin=2 * cm,
        title=f'{user.name} - Randevu Kartı',
    )

    story = [
        Paragraph(escape(f'{user.title or DEFAULT_TITLE} {user.name}'), styles['title']),
    ]
    if user.department:
        story.append(Paragraph(escape(user.department), styles['subtitle']))
    if user.office:
        story.append(Paragraph(escape(f'Ofis: {user.office}'), styles['body']))

    contact = [value for value in (user.email, user.phone, user.website) if value]
    if contact:
        story.append(Paragraph(escape(' | '.join(contact)), styles['body']))

    story.append(Spacer(1, 0.8 * cm))
    story.append(Image(io.BytesIO(qr_png(url, size=400)), width=7 * cm, height=7 * cm))
    story.append(Spacer(1, 0.3 * cm))
    story.append(Paragraph('Randevu almak için QR kodu okutun', styles['subtitle']))
    story.append(Paragraph(escape(url), styles['body']))

    rows = _schedule_rows(user) if include_schedule else []
    if rows:
        story.append(Paragraph('Haftalık Görüşme Saatleri', styles['heading']))
        table = Table(
            [[Paragraph('Gün', styles['cell']), Paragraph('Saatler', styles['cell'])]]
            + [[Paragraph(escape(day), styles['cell']), Paragraph(escape(hours), styles['cell'])] for day, hours in rows],
            colWidths=[4 * cm, 12 * cm],
        )
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), HexColor('#e0e7ff')),
            ('GRID', (0, 0), (-1, -1), 0.5, GRID_COLOR),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), 4),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ]))
        story.append(table)

    doc.build(story)
    return buffer.getvalue()
