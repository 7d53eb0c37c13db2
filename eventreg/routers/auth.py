from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from eventreg.database import get_db
from eventreg.models.user import User
from eventreg.schemas.auth import (
    AccessTokenOut,
    ForgotPasswordIn,
    LoginIn,
    LoginOut,
    RefreshIn,
    ResendVerificationIn,
    ResetPasswordIn,
)
from eventreg.schemas.common import MessageOut
from eventreg.schemas.user import UserOut
from eventreg.services import auth as auth_service
from eventreg.utils.auth import get_current_user
from eventreg.utils.rate_limit import RateLimiter

router = APIRouter(prefix="/auth", tags=["Auth"])

# reset mails are cheap to request and expensive to receive
forgot_password_limit = RateLimiter(max_requests=5, window_seconds=15 * 60)


@router.post("/login", response_model=LoginOut)
def login(body: LoginIn, db: Session = Depends(get_db)):
    return auth_service.validate_user(db, body.email, body.password)


@router.post("/refresh", response_model=AccessTokenOut)
def refresh(body: RefreshIn, db: Session = Depends(get_db)):
    return auth_service.refresh(db, body.refresh_token)


@router.get("/me", response_model=UserOut)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/verify-email", response_model=MessageOut)
def verify_email(token: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    auth_service.verify_email(db, token)
    return {"message": "Email verified successfully"}


@router.post("/resend-verification", response_model=MessageOut)
def resend_verification(body: ResendVerificationIn, db: Session = Depends(get_db)):
    auth_service.resend_verification(db, body.email)
    return {"message": "If your email is registered and not verified, a new verification email has been sent"}


@router.post("/forgot-password", response_model=MessageOut, dependencies=[Depends(forgot_password_limit)])
def forgot_password(body: ForgotPasswordIn, db: Session = Depends(get_db)):
    auth_service.request_password_reset(db, body.email)
    # same answer whether or not the address exists
    return {"message": "If your email is registered, you will receive a password reset link"}


@router.post("/reset-password", response_model=MessageOut)
def reset_password(body: ResetPasswordIn, db: Session = Depends(get_db)):
    auth_service.reset_password(db, body.token, body.password)
    return {"message": "Password has been reset successfully"}
