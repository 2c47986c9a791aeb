from datetime import date, datetime, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from qnnect.auth.passwords import verify_password
from qnnect.models.appointment import STATUS_APPROVED, STATUS_CANCELLED, STATUS_NO_RESPONSE, STATUS_PENDING, STATUS_REJECTED
from qnnect.models.setting import APPOINTMENT_TIMEOUT_HOURS, SLOT_DURATION, get_setting, set_setting
from qnnect.models.user import ROLE_ADMIN, ROLE_FACULTY, User
from qnnect.routes.admin_routes import (
    CreateFacultyRequest,
    CreateTopicRequest,
    ReorderTopicsRequest,
    SettingUpdateRequest,
    StatusUpdateRequest,
    UpdateTopicRequest,
    UpdateUserRequest,
    create_faculty,
    create_topic,
    delete_topic,
    delete_user,
    expire_appointments,
    export_appointments,
    get_faculty_availability,
    get_stats,
    get_system_setting,
    list_all_topics,
    list_appointments,
    list_users,
    reorder_topics,
    reset_password,
    update_appointment_status,
    update_faculty_availability,
    update_system_setting,
    update_topic,
    update_user,
)
from qnnect.routes.schemas import UpdateAvailabilityRequest


@pytest.fixture
def admin(make_user) -> User:
    return make_user(ROLE_ADMIN, name='Sistem Yöneticisi', slug='sistem-yoneticisi')


def test_create_faculty_issues_temporary_password(appointment_db, skip_schema_check, admin, faculty) -> None:
    set_setting(appointment_db, SLOT_DURATION, 30)

    result = create_faculty(
        data=CreateFacultyRequest(name='Ayşe Yılmaz', email=' Ayse.Yilmaz@Uni.edu.tr ', department='Matematik'),
        current_user=admin,
        db=appointment_db,
    )

    user = result['user']
    assert user.role == ROLE_FACULTY
    assert user.email == 'ayse.yilmaz@uni.edu.tr'
    assert user.slug == 'ayse-yilmaz-1'
    assert user.qr_code_url.endswith('/appointment/ayse-yilmaz-1')
    assert user.slot_duration == 30
    assert user.is_first_login is True
    assert len(user.availability) == 7
    assert verify_password(result['temporary_password'], user.hashed_password)


def test_create_faculty_with_explicit_password(appointment_db, skip_schema_check, admin) -> None:
    result = create_faculty(
        data=CreateFacultyRequest(name='Can Ak', email='can@uni.edu.tr', password='gizli123'),
        current_user=admin,
        db=appointment_db,
    )

    assert result['temporary_password'] is None
    assert result['user'].slot_duration == 15
    assert verify_password('gizli123', result['user'].hashed_password)


def test_create_faculty_rejects_duplicate_email(appointment_db, skip_schema_check, admin) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_faculty(
            data=CreateFacultyRequest(name='Başka Biri', email=admin.email),
            current_user=admin,
            db=appointment_db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Bu e-posta adresi zaten kayıtlı'


def test_list_users_filters_by_role_and_search(appointment_db, skip_schema_check, admin, make_user) -> None:
    make_user(name='Ali Veli', student_number='20201111')
    make_user(name='Zehra Kaya')
    make_user(ROLE_FACULTY, name='Ali Demir')

    page = list_users(role='student', search='ali', page=1, limit=20, current_user=admin, db=appointment_db)

    assert page['total'] == 1
    assert page['items'][0].student_number == '20201111'


def test_update_user_promotes_student_to_faculty(appointment_db, skip_schema_check, admin, make_user) -> None:
    student = make_user(name='Deniz Şahin')

    result = update_user(
        user_id=student.id,
        data=UpdateUserRequest(role='Faculty'),
        current_user=admin,
        db=appointment_db,
    )

    assert result.role == ROLE_FACULTY
    assert result.slug == 'deniz-sahin'
    assert result.qr_code_url.endswith('/appointment/deniz-sahin')
    assert len(result.availability) == 7


def test_admin_cannot_demote_themselves(appointment_db, skip_schema_check, admin) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_user(
            user_id=admin.id,
            data=UpdateUserRequest(role='student'),
            current_user=admin,
            db=appointment_db,
        )

    assert exception_info.value.status_code == 400


def test_delete_user_rules(appointment_db, skip_schema_check, admin, faculty, make_user, make_appointment) -> None:
    with pytest.raises(HTTPException) as exception_info:
        delete_user(user_id=admin.id, current_user=admin, db=appointment_db)
    assert exception_info.value.detail == 'Kendi hesabınızı silemezsiniz'

    make_appointment(faculty)
    with pytest.raises(HTTPException) as exception_info:
        delete_user(user_id=faculty.id, current_user=admin, db=appointment_db)
    assert exception_info.value.status_code == 400

    student = make_user(email='yeni@uni.edu.tr')
    response = delete_user(user_id=student.id, current_user=admin, db=appointment_db)
    assert response.status_code == 204
    assert appointment_db.query(User).filter(User.id == student.id).first() is None


def test_reset_password_forces_change(appointment_db, skip_schema_check, admin, make_user) -> None:
    user = make_user(password='eskisifre', is_first_login=False)

    result = reset_password(user_id=user.id, current_user=admin, db=appointment_db)

    appointment_db.refresh(user)
    assert user.is_first_login is True
    assert verify_password(result['temporary_password'], user.hashed_password)
    assert not verify_password('eskisifre', user.hashed_password)


def test_status_update_follows_the_state_machine(
    appointment_db, skip_schema_check, admin, faculty, make_appointment,
) -> None:
    appointment = make_appointment(faculty, status=STATUS_REJECTED)

    with pytest.raises(HTTPException) as exception_info:
        update_appointment_status(
            appointment_id=appointment.id,
            data=StatusUpdateRequest(status='approved'),
            current_user=admin,
            db=appointment_db,
        )

    assert exception_info.value.status_code == 400


def test_status_update_approves_and_cancels(
    appointment_db, skip_schema_check, admin, faculty, make_appointment,
) -> None:
    appointment = make_appointment(faculty)

    approved = update_appointment_status(
        appointment_id=appointment.id,
        data=StatusUpdateRequest(status='approved'),
        current_user=admin,
        db=appointment_db,
    )
    assert approved.status == STATUS_APPROVED

    cancelled = update_appointment_status(
        appointment_id=appointment.id,
        data=StatusUpdateRequest(status='cancelled', reason='Resmi tatil'),
        current_user=admin,
        db=appointment_db,
    )
    assert cancelled.status == STATUS_CANCELLED
    assert cancelled.cancelled_by == 'admin'
    assert cancelled.cancellation_reason == 'Resmi tatil'


def test_status_update_rejects_conflicting_approval(
    appointment_db, skip_schema_check, admin, faculty, make_appointment,
) -> None:
    make_appointment(faculty, status=STATUS_APPROVED, start_time='09:00', end_time='09:30')
    appointment = make_appointment(faculty, start_time='09:15', end_time='09:30')

    with pytest.raises(HTTPException) as exception_info:
        update_appointment_status(
            appointment_id=appointment.id,
            data=StatusUpdateRequest(status='approved'),
            current_user=admin,
            db=appointment_db,
        )

    assert exception_info.value.status_code == 409


def test_list_appointments_filters_by_date_range(
    appointment_db, skip_schema_check, admin, faculty, make_appointment, future_date,
) -> None:
    make_appointment(faculty)
    make_appointment(faculty, date=future_date + timedelta(days=7))

    page = list_appointments(
        appointment_status=None,
        faculty_id=faculty.id,
        date_from=future_date + timedelta(days=1),
        date_to=None,
        page=1,
        limit=20,
        current_user=admin,
        db=appointment_db,
    )

    assert page['total'] == 1
    assert page['items'][0].date == future_date + timedelta(days=7)


def test_expire_appointments_uses_timeout_setting(
    appointment_db, skip_schema_check, admin, faculty, make_appointment,
) -> None:
    set_setting(appointment_db, APPOINTMENT_TIMEOUT_HOURS, 24)
    stale = make_appointment(faculty, created_at=datetime.now() - timedelta(hours=48))
    past = make_appointment(faculty, date=date.today() - timedelta(days=1))
    fresh = make_appointment(faculty, start_time='10:00', end_time='10:15')

    result = expire_appointments(current_user=admin, db=appointment_db)

    assert result == {'expired': 2, 'timeout_hours': 24.0}
    for appointment in (stale, past, fresh):
        appointment_db.refresh(appointment)
    assert stale.status == STATUS_NO_RESPONSE
    assert past.status == STATUS_NO_RESPONSE
    assert fresh.status == STATUS_PENDING


def test_export_appointments_writes_csv(appointment_db, skip_schema_check, admin, faculty, make_appointment) -> None:
    make_appointment(faculty, description='Staj yeri')

    response = export_appointments(
        appointment_status=None,
        faculty_id=None,
        date_from=None,
        date_to=None,
        current_user=admin,
        db=appointment_db,
    )

    body = response.body.decode('utf-8')
    assert response.media_type == 'text/csv; charset=utf-8'
    assert body.startswith('\ufeffID,Öğrenci Adı')
    assert 'Staj yeri' in body
    assert 'Beklemede' in body
    assert 'Bilgisayar Mühendisliği' in body


def test_settings_are_validated(appointment_db, skip_schema_check, admin) -> None:
    assert get_system_setting(key=SLOT_DURATION, current_user=admin, db=appointment_db)['value'] == 15

    result = update_system_setting(
        key=SLOT_DURATION,
        data=SettingUpdateRequest(value=30),
        current_user=admin,
        db=appointment_db,
    )
    assert result['value'] == 30
    assert get_setting(appointment_db, SLOT_DURATION) == 30

    with pytest.raises(HTTPException) as exception_info:
        update_system_setting(
            key=SLOT_DURATION,
            data=SettingUpdateRequest(value=5),
            current_user=admin,
            db=appointment_db,
        )
    assert exception_info.value.status_code == 400

    with pytest.raises(HTTPException) as exception_info:
        update_system_setting(
            key=APPOINTMENT_TIMEOUT_HOURS,
            data=SettingUpdateRequest(value=-1),
            current_user=admin,
            db=appointment_db,
        )
    assert exception_info.value.detail == 'Süre negatif olamaz'

    with pytest.raises(HTTPException) as exception_info:
        get_system_setting(key='theme', current_user=admin, db=appointment_db)
    assert exception_info.value.status_code == 404


def test_admin_edits_faculty_availability(appointment_db, skip_schema_check, admin, faculty) -> None:
    data = UpdateAvailabilityRequest(
        availability=[{'day': 'Friday', 'isActive': True, 'timeSlots': [{'start': '13:00', 'end': '15:00'}]}],
        slot_duration=30,
    )

    result = update_faculty_availability(faculty_id=faculty.id, data=data, current_user=admin, db=appointment_db)

    assert result['slot_duration'] == 30
    friday = result['availability'][4]
    assert friday['day'] == 'Friday'
    assert friday['timeSlots'][0]['start'] == '13:00'
    assert get_faculty_availability(faculty_id=faculty.id, current_user=admin, db=appointment_db) == result


def test_stats_summarize_users_and_appointments(
    appointment_db, skip_schema_check, admin, faculty, make_user, make_appointment,
) -> None:
    make_user()
    make_user(ROLE_FACULTY, google_access_token='token')
    make_appointment(faculty)

    result = get_stats(current_user=admin, db=appointment_db)

    assert result['users'] == {'student': 1, 'faculty': 2, 'admin': 1, 'total': 4}
    assert result['appointments']['pending'] == 1
    assert result['google_connected_faculty'] == 1


def test_create_topic_appends_to_the_order(appointment_db, skip_schema_check, admin) -> None:
    topic = create_topic(
        data=CreateTopicRequest(name='  Yüksek lisans başvurusu ', description='Başvuru süreci', is_advisor_only=True),
        current_user=admin,
        db=appointment_db,
    )

    assert topic.name == 'Yüksek lisans başvurusu'
    assert topic.order == 7
    assert topic.is_advisor_only is True
    assert topic.is_active is True

    with pytest.raises(HTTPException) as exception_info:
        create_topic(data=CreateTopicRequest(name='Staj görüşmesi'), current_user=admin, db=appointment_db)
    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Bu isimde bir konu zaten mevcut'


def test_topic_request_limits_name_length() -> None:
    with pytest.raises(ValidationError):
        CreateTopicRequest(name='x' * 101)


def test_update_topic_renames_and_reactivates(appointment_db, skip_schema_check, admin) -> None:
    topic = list_all_topics(current_user=admin, db=appointment_db)[0]
    delete_topic(topic_id=topic.id, current_user=admin, db=appointment_db)
    assert topic.is_active is False

    result = update_topic(
        topic_id=topic.id,
        data=UpdateTopicRequest(name='Staj ve iş görüşmesi', is_active=True),
        current_user=admin,
        db=appointment_db,
    )

    assert result.name == 'Staj ve iş görüşmesi'
    assert result.is_active is True
    assert result.is_advisor_only is False

    with pytest.raises(HTTPException) as exception_info:
        update_topic(
            topic_id=topic.id,
            data=UpdateTopicRequest(name='Akademik danışmanlık'),
            current_user=admin,
            db=appointment_db,
        )
    assert exception_info.value.status_code == 400


def test_delete_topic_is_soft(appointment_db, skip_schema_check, admin) -> None:
    topic = list_all_topics(current_user=admin, db=appointment_db)[-1]

    result = delete_topic(topic_id=topic.id, current_user=admin, db=appointment_db)

    assert result == {'message': 'Konu başarıyla silindi'}
    assert len(list_all_topics(current_user=admin, db=appointment_db)) == 6

    with pytest.raises(HTTPException) as exception_info:
        delete_topic(topic_id=999, current_user=admin, db=appointment_db)
    assert exception_info.value.detail == 'Konu bulunamadı'


def test_reorder_topics(appointment_db, skip_schema_check, admin) -> None:
    first, second = list_all_topics(current_user=admin, db=appointment_db)[:2]

    topics = reorder_topics(
        data=ReorderTopicsRequest(topic_orders=[{'id': first.id, 'order': 10}, {'id': second.id, 'order': 0}]),
        current_user=admin,
        db=appointment_db,
    )

    assert topics[0].id == second.id
    assert topics[-1].id == first.id
