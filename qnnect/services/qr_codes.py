import base64
import io

import qrcode
import qrcode.image.svg
from qrcode.constants import ERROR_CORRECT_L

from qnnect.core import config

DEFAULT_SIZE = 300
MIN_SIZE = 100
MAX_SIZE = 1000
DEFAULT_DARK_COLOR = '#000000'
DEFAULT_LIGHT_COLOR = '#FFFFFF'


def appointment_url(slug: str) -> str:
    return f'{config.FRONTEND_URL}/appointment/{slug}'


def _build(data: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=1,
        error_correction=ERROR_CORRECT_L,
        box_size=10,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)
    return qr


def qr_png(data: str, size: int = DEFAULT_SIZE, dark: str = DEFAULT_DARK_COLOR, light: str = DEFAULT_LIGHT_COLOR) -> bytes:
    size = max(MIN_SIZE, min(MAX_SIZE, size))
    img = _build(data).make_image(fill_color=dark, back_color=light)
    img = img.resize((size, size))

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


def qr_svg(data: str) -> bytes:
    img = _build(data).make_image(image_factory=qrcode.image.svg.SvgPathImage)
    buffer = io.BytesIO()
    img.save(buffer)
    return buffer.getvalue()


def qr_data_url(data: str, size: int = DEFAULT_SIZE, dark: str = DEFAULT_DARK_COLOR, light: str = DEFAULT_LIGHT_COLOR) -> str:
    encoded = base64.b64encode(qr_png(data, size=size, dark=dark, light=light)).decode('utf-8')
    return f'data:image/png;base64,{encoded}'
