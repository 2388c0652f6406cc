import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storeops.core.api_docs import error_responses
from storeops.core.deps import get_db
from storeops.core.security import create_access_token, hash_password, verify_password
from storeops.core.security_current import get_current_user
from storeops.models.user import User
from storeops.schemas.auth import (
    LoginIn,
    PasswordResetConfirmIn,
    PasswordResetRequestIn,
    RegisterIn,
    RegisterOut,
    TokenOut,
    UserOut,
)
from storeops.schemas.common import MessageOut
from storeops.services.password_reset_service import consume_password_reset, issue_password_reset

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)

TOKEN_RESPONSE = {
    200: {
        "description": "Bearer access token",
        "content": {
            "application/json": {
                "example": {
                    "access_token": "access-token",
                    "token_type": "bearer",
                }
            }
        },
    }
}
RESET_REQUEST_MESSAGE = "If an account exists for that email, a reset link has been sent"


def user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone=user.phone,
        address=user.address,
        role=user.role,
        status=user.status,
        created_at=user.created_at,
    )


def _authenticate_user(db: Session, email: str, password: str) -> User:
    user = db.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()
    if not user or not verify_password(password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if user.status != "active":
        raise HTTPException(status_code=403, detail="Account is pending approval or suspended")
    return user


@router.post(
    "/register",
    response_model=RegisterOut,
    status_code=status.HTTP_201_CREATED,
    summary="Register a user",
    description=(
        "The first account becomes an active admin and receives a token immediately. "
        "Later accounts are pending customers until an admin activates them."
    ),
    responses=error_responses(409, 422, 500),
)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    normalized_email = str(payload.email).lower()
    exists = db.execute(
        select(User.id).where(func.lower(User.email) == normalized_email)
    ).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="Email already registered")

    is_first_user = db.execute(select(func.count(User.id))).scalar_one() == 0
    user = User(
        email=normalized_email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        hashed_password=hash_password(payload.password),
        phone=payload.phone,
        address=payload.address,
        role="admin" if is_first_user else "customer",
        status="active" if is_first_user else "pending",
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    if is_first_user:
        logger.info("bootstrap admin %s registered", user.id)
        return RegisterOut(
            user=user_out(user),
            access_token=create_access_token(user.id),
            message="Admin account created",
        )
    return RegisterOut(
        user=user_out(user),
        access_token=None,
        message="Registration received. Your account is pending approval.",
    )


@router.post(
    "/login",
    response_model=TokenOut,
    summary="Login with JSON",
    description="Authenticate with email and password. Only active accounts receive a token.",
    responses={**TOKEN_RESPONSE, **error_responses(401, 403, 422, 500)},
)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = _authenticate_user(db, str(payload.email), payload.password)
    return TokenOut(access_token=create_access_token(user.id))


@router.post(
    "/token",
    response_model=TokenOut,
    summary="OAuth2 password token (Swagger Authorize)",
    description="Form-data login endpoint used by Swagger Authorize. Put the email in `username`.",
    responses={**TOKEN_RESPONSE, **error_responses(401, 403, 422, 500)},
)
def login_for_swagger(
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
):
    user = _authenticate_user(db, form_data.username, form_data.password)
    return TokenOut(access_token=create_access_token(user.id))


@router.get(
    "/me",
    response_model=UserOut,
    summary="Get current user profile",
    responses=error_responses(401, 500),
)
def get_my_profile(user: User = Depends(get_current_user)):
    return user_out(user)


@router.post(
    "/password-reset/request",
    response_model=MessageOut,
    summary="Request a password reset",
    description="Always succeeds so the response does not reveal whether the email is registered.",
    responses=error_responses(422, 500),
)
def request_password_reset(payload: PasswordResetRequestIn, db: Session = Depends(get_db)):
    issued = issue_password_reset(db, email=str(payload.email))
    if issued:
        db.commit()
    return MessageOut(message=RESET_REQUEST_MESSAGE)


@router.post(
    "/password-reset/confirm",
    response_model=MessageOut,
    summary="Reset password with a token",
    responses=error_responses(400, 422, 500),
)
def confirm_password_reset(payload: PasswordResetConfirmIn, db: Session = Depends(get_db)):
    consume_password_reset(db, raw_token=payload.token, new_password=payload.new_password)
    db.commit()
    return MessageOut(message="Password has been reset")
