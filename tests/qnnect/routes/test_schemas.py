import pytest

from qnnect.models.user import User
from qnnect.routes.schemas import (
    AppointmentResponse,
    FacultyPublicResponse,
    UserResponse,
    normalize_hhmm,
    paginate,
)


@pytest.mark.parametrize('model', [UserResponse, FacultyPublicResponse, AppointmentResponse])
def test_response_models_use_config_dict(model) -> None:
    assert model.model_config['from_attributes'] is True
    assert 'Config' not in vars(model)


def test_response_models_read_orm_objects(faculty, make_appointment) -> None:
    appointment = make_appointment(faculty)

    assert FacultyPublicResponse.model_validate(faculty).full_name == 'Dr. Öğr. Üyesi Ayşe Yılmaz'
    assert UserResponse.model_validate(faculty).google_connected is False
    assert AppointmentResponse.model_validate(appointment).status_label == 'Beklemede'


def test_paginate_reports_page_count(appointment_db, make_user) -> None:
    for _ in range(5):
        make_user()

    page = paginate(appointment_db.query(User).order_by(User.id), page=2, limit=2)

    assert (page['total'], page['pages'], len(page['items'])) == (5, 3, 2)


def test_normalize_hhmm_pads_hours() -> None:
    assert normalize_hhmm(' 9:30') == '09:30'

    with pytest.raises(ValueError):
        normalize_hhmm('9.30')
