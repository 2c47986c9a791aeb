import pytest
from fastapi import HTTPException

from qnnect.routes.qr_routes import download_image, download_pdf, generate


def test_generate_returns_booking_qr(appointment_db, skip_schema_check, faculty) -> None:
    result = generate(slug='ayse-yilmaz', size=200, dark='#1E3A8A', light='#FFFFFF', db=appointment_db)

    assert result['slug'] == 'ayse-yilmaz'
    assert result['url'].endswith('/appointment/ayse-yilmaz')
    assert result['faculty_name'] == 'Dr. Öğr. Üyesi Ayşe Yılmaz'
    assert result['qr_code'].startswith('data:image/png;base64,')


def test_generate_rejects_bad_colors(appointment_db, skip_schema_check, faculty) -> None:
    with pytest.raises(HTTPException) as exception_info:
        generate(slug='ayse-yilmaz', size=200, dark='blue', light='#FFFFFF', db=appointment_db)

    assert exception_info.value.status_code == 400


def test_generate_unknown_slug(appointment_db, skip_schema_check) -> None:
    with pytest.raises(HTTPException) as exception_info:
        generate(slug='nobody', size=200, dark='#000000', light='#FFFFFF', db=appointment_db)

    assert exception_info.value.status_code == 404


@pytest.mark.parametrize(
    ('image_format', 'media_type', 'marker'),
    [('png', 'image/png', b'\x89PNG'), ('SVG', 'image/svg+xml', b'<svg')],
)
def test_download_image(appointment_db, skip_schema_check, faculty, image_format, media_type, marker) -> None:
    response = download_image(slug='ayse-yilmaz', image_format=image_format, size=300, db=appointment_db)

    assert response.media_type == media_type
    assert marker in response.body
    assert 'qnnect-ayse-yilmaz.' in response.headers['content-disposition']


def test_download_image_rejects_unknown_format(appointment_db, skip_schema_check, faculty) -> None:
    with pytest.raises(HTTPException) as exception_info:
        download_image(slug='ayse-yilmaz', image_format='gif', size=300, db=appointment_db)

    assert exception_info.value.detail == 'Desteklenmeyen format'


def test_download_pdf(appointment_db, skip_schema_check, faculty) -> None:
    response = download_pdf(slug='ayse-yilmaz', include_schedule=True, db=appointment_db)

    assert response.media_type == 'application/pdf'
    assert response.body.startswith(b'%PDF')
