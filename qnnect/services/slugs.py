import re

from sqlalchemy.orm import Session

from qnnect.models.user import User
from qnnect.services.qr_codes import appointment_url

TURKISH_CHARACTERS = str.maketrans({
    'ç': 'c', 'Ç': 'c',
    'ğ': 'g', 'Ğ': 'g',
    'ı': 'i', 'İ': 'i',
    'ö': 'o', 'Ö': 'o',
    'ş': 's', 'Ş': 's',
    'ü': 'u', 'Ü': 'u',
})


def slugify(name: str) -> str:
    value = (name or '').translate(TURKISH_CHARACTERS).lower()
    value = re.sub(r'[^a-z0-9]+', '-', value)
    return value.strip('-')


def unique_slug(db: Session, name: str, user_id: int | None = None) -> str:
    """Slug for ``name`` that no other user holds, suffixed -1, -2, ... on collision."""
    base = slugify(name) or (f'user-{user_id}' if user_id is not None else 'user')

    candidate = base
    counter = 1
    while True:
        query = db.query(User.id).filter(User.slug == candidate)
        if user_id is not None:
            query = query.filter(User.id != user_id)
        if query.first() is None:
            return candidate
        candidate = f'{base}-{counter}'
        counter += 1


def assign_slug(db: Session, user: User, name: str | None = None) -> str:
    """Give ``user`` a fresh slug and point its stored booking URL at it."""
    user.slug = unique_slug(db, name or user.name, user.id)
    user.qr_code_url = appointment_url(user.slug)
    return user.slug
