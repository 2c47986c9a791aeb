import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qnnect.auth import jwt_handler
from qnnect.auth.dependencies import get_current_user
from qnnect.auth.passwords import MIN_PASSWORD_LENGTH, hash_password, verify_password
from qnnect.database import database_unavailable, ensure_database_ready, get_db
from qnnect.models.user import ROLE_STUDENT, User
from qnnect.routes.schemas import MessageResponse, UserResponse, normalize_email, normalize_required

logger = logging.getLogger(__name__)

router = APIRouter(tags=['auth'])

INVALID_CREDENTIALS_DETAIL = 'Geçersiz e-posta veya şifre'


def check_password_strength(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Şifre en az {MIN_PASSWORD_LENGTH} karakter olmalıdır')
    return value


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    student_number: str
    department: str

    @field_validator('name', 'student_number', 'department')
    @classmethod
    def validate_required(cls, value: str) -> str:
        return normalize_required(value)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return value.strip().lower()


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return check_password_strength(value)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'
    user: UserResponse


def issue_token(user: User) -> dict:
    return {
        'access_token': jwt_handler.create_access_token(subject=str(user.id), role=user.role),
        'token_type': 'bearer',
        'user': user,
    }


@router.post('/register', response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        if db.query(User).filter(User.email == data.email).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Bu e-posta adresi zaten kayıtlı',
            )

        if db.query(User).filter(User.student_number == data.student_number).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Bu öğrenci numarası zaten kayıtlı',
            )

        user = User(
            name=data.name,
            email=data.email,
            hashed_password=hash_password(data.password),
            role=ROLE_STUDENT,
            student_number=data.student_number,
            department=data.department,
            is_first_login=False,
            last_login=datetime.now(),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Registered student %s', user.id)
    return issue_token(user)


@router.post('/login', response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        user = db.query(User).filter(User.email == data.email).first()
        if user is None or not verify_password(data.password, user.hashed_password):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS_DETAIL)

        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Hesabınız devre dışı bırakılmış')

        user.last_login = datetime.now()
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return issue_token(user)


@router.get('/me', response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post('/change-password', response_model=MessageResponse)
def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(data.current_password, current_user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Mevcut şifre hatalı')

    try:
        current_user.hashed_password = hash_password(data.new_password)
        current_user.is_first_login = False
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return {'message': 'Şifre başarıyla güncellendi'}
