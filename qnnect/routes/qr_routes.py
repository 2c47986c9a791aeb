import re

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qnnect.database import database_unavailable, ensure_database_ready, get_db
from qnnect.routes.schemas import get_faculty_by_slug
from qnnect.services.profile_card import build_profile_card
from qnnect.services.qr_codes import (
    DEFAULT_DARK_COLOR,
    DEFAULT_LIGHT_COLOR,
    DEFAULT_SIZE,
    MAX_SIZE,
    MIN_SIZE,
    appointment_url,
    qr_data_url,
    qr_png,
    qr_svg,
)

router = APIRouter(tags=['qr'])

COLOR_PATTERN = re.compile(r'^#[0-9a-fA-F]{6}$')
IMAGE_FORMATS = {
    'png': 'image/png',
    'svg': 'image/svg+xml',
}


class QRCodeDataResponse(BaseModel):
    url: str
    qr_code: str
    faculty_name: str
    slug: str


def validate_color(value: str) -> str:
    if not COLOR_PATTERN.match(value):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Renk #RRGGBB formatında olmalıdır')
    return value


@router.get('/generate/{slug}', response_model=QRCodeDataResponse)
def generate(
    slug: str,
    size: int = Query(default=DEFAULT_SIZE, ge=MIN_SIZE, le=MAX_SIZE),
    dark: str = Query(default=DEFAULT_DARK_COLOR),
    light: str = Query(default=DEFAULT_LIGHT_COLOR),
    db: Session = Depends(get_db),
):
    dark, light = validate_color(dark), validate_color(light)

    ensure_database_ready()

    try:
        faculty = get_faculty_by_slug(db, slug)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    url = appointment_url(faculty.slug)
    return {
        'url': url,
        'qr_code': qr_data_url(url, size=size, dark=dark, light=light),
        'faculty_name': faculty.full_name,
        'slug': faculty.slug,
    }


@router.get('/image/{slug}')
def download_image(
    slug: str,
    image_format: str = Query(default='png', alias='format'),
    size: int = Query(default=DEFAULT_SIZE, ge=MIN_SIZE, le=MAX_SIZE),
    db: Session = Depends(get_db),
):
    image_format = image_format.strip().lower()
    if image_format not in IMAGE_FORMATS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Desteklenmeyen format')

    ensure_database_ready()

    try:
        faculty = get_faculty_by_slug(db, slug)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    url = appointment_url(faculty.slug)
    content = qr_png(url, size=size) if image_format == 'png' else qr_svg(url)
    return Response(
        content=content,
        media_type=IMAGE_FORMATS[image_format],
        headers={'Content-Disposition': f'attachment; filename="qnnect-{faculty.slug}.{image_format}"'},
    )


@router.get('/pdf/{slug}')
def download_pdf(
    slug: str,
    include_schedule: bool = Query(default=True),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        faculty = get_faculty_by_slug(db, slug)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return Response(
        content=build_profile_card(faculty, include_schedule=include_schedule),
        media_type='application/pdf',
        headers={'Content-Disposition': f'attachment; filename="qnnect-{faculty.slug}.pdf"'},
    )
