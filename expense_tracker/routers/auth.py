import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import SQLModel, Field, Session, select
from pydantic import EmailStr

from ..database import get_session
from ..models.user import User
from ..models.timestamps import utc_now
from ..core.security import get_current_user, hash_password, verify_password
from ..core.jwt import create_access_token
from ..config import settings


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)

COOKIE_NAME = "access_token"
COOKIE_MAX_AGE = 60 * 60 * 24 * 7


class RegisterIn(SQLModel):
    email: EmailStr
    password: str = Field(min_length=6)


class UserRead(SQLModel):
    id: uuid.UUID
    email: str
    created_at: datetime
    updated_at: datetime


class LoginIn(SQLModel):
    email: EmailStr
    password: str


class TokenOut(SQLModel):
    access_token: str
    token_type: str


def _reject_whitespace(password: str):
    if any(c.isspace() for c in password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must not contain whitespace",
        )


def _authenticate(session: Session, email: str, password: str) -> User:
    _reject_whitespace(password)
    email_norm = email.strip().lower()
    user = session.exec(select(User).where(User.email == email_norm)).first()
    if user is None or not verify_password(password, user.hashed_password):
        logger.warning("Failed login for %s", email_norm)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return user


def _issue_token(user: User) -> str:
    return create_access_token({"sub": str(user.id), "email": user.email})


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
)
def register_user(
    payload: RegisterIn,
    session: Session = Depends(get_session),
):
    _reject_whitespace(payload.password)
    email_norm = payload.email.strip().lower()
    existing = session.exec(select(User).where(User.email == email_norm)).first()
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    now = utc_now()
    user = User(
        id=uuid.uuid4(),
        email=email_norm,
        hashed_password=hash_password(payload.password),
        created_at=now,
        updated_at=now,
    )

    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


@router.post(
    "/login",
    response_model=UserRead,
    status_code=status.HTTP_200_OK,
)
def login(payload: LoginIn, response: Response, session: Session = Depends(get_session)):
    user = _authenticate(session, payload.email, payload.password)

    # HttpOnly cookie keeps the token away from JS; cross-site production needs SameSite=None + Secure
    is_prod = settings.environment.lower() == "production"
    response.set_cookie(
        key=COOKIE_NAME,
        value=_issue_token(user),
        httponly=True,
        secure=is_prod,
        samesite="none" if is_prod else "lax",
        max_age=COOKIE_MAX_AGE,
        path="/",
    )
    return user


@router.get(
    "/me",
    response_model=UserRead,
    status_code=status.HTTP_200_OK,
)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
)
def logout(response: Response):
    response.delete_cookie(key=COOKIE_NAME, path="/")
    return None


@router.post(
    "/token",
    response_model=TokenOut,
    status_code=status.HTTP_200_OK,
)
def token(form_data: OAuth2PasswordRequestForm = Depends(), session: Session = Depends(get_session)):
    # OAuth2PasswordRequestForm carries the email in 'username'
    user = _authenticate(session, form_data.username, form_data.password)
    return TokenOut(access_token=_issue_token(user), token_type="bearer")
