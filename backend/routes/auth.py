# backend/routes/auth.py
import hashlib
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from utils.hashing import get_password_hash, verify_password
from utils.tokenJWT import create_access_token, get_current_user
from utils.audit import write_log, client_ip
from utils.mailer import Mailer, get_mailer
from models.users import User
from models.password_reset import PasswordResetToken
from schemas import user as schemas

router = APIRouter(prefix="/auth", tags=["Auth"])

FORGOT_PASSWORD_MESSAGE = "If the email is registered, a link to reset the password has been sent."


def _hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

def find_user_by_email(db: Session, email: str):
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


# Register a new user
@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserRegister, request: Request, db: Session = Depends(get_db)):
    # Normalize email input
    normalized_email = user.email.strip().lower()

    # Check for existing user
    if find_user_by_email(db, normalized_email):
        write_log(db, user_id=None, action="REGISTER", resource="auth", status="FAIL",
                  ip=client_ip(request), meta={"email": normalized_email, "reason": "Email exists"})
        raise HTTPException(status_code=400, detail="Email already registered")

    new_user = User(
        name=user.name.strip(),
        email=normalized_email,
        password_hash=get_password_hash(user.password),
        is_admin=False,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    write_log(db, user_id=new_user.id, action="REGISTER", resource="auth", resource_id=new_user.id,
              ip=client_ip(request), meta={"email": new_user.email})

    return {"access_token": create_access_token(new_user.id), "token_type": "bearer", "user": new_user}


# Authenticate user and issue JWT token
@router.post("/login", response_model=schemas.AuthResponse)
def login(payload: schemas.UserLogin, request: Request, db: Session = Depends(get_db)):
    db_user = find_user_by_email(db, payload.email)

    # Same answer for unknown email and wrong password
    if not db_user or not verify_password(payload.password, db_user.password_hash):
        write_log(db, user_id=(db_user.id if db_user else None), action="LOGIN", resource="auth",
                  status="FAIL", ip=client_ip(request), meta={"email": payload.email})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    access_token = create_access_token(db_user.id)

    write_log(db, user_id=db_user.id, action="LOGIN", resource="auth", resource_id=db_user.id,
              ip=client_ip(request), meta={"email": db_user.email})

    return {"access_token": access_token, "token_type": "bearer", "user": db_user}


# Retrieve current authenticated user details
@router.get("/me", response_model=schemas.UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user


# Issue a password reset link; the answer never reveals whether the email exists
@router.post("/forgot-password", response_model=schemas.MessageResponse)
def forgot_password(
    payload: schemas.ForgotPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    user = find_user_by_email(db, payload.email)
    if not user:
        return {"message": FORGOT_PASSWORD_MESSAGE}

    token = secrets.token_hex(32)

    # One active token per user
    db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).delete(synchronize_session=False)
    db.add(PasswordResetToken(
        user_id=user.id,
        token_hash=_hash_reset_token(token),
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
    ))
    db.commit()

    reset_url = f"{settings.FRONTEND_URL.rstrip('/')}/redefinir-senha?token={token}"
    mailer.send_reset_password_email(user.email, user_name=user.name, reset_url=reset_url)

    write_log(db, user_id=user.id, action="PASSWORD_FORGOT", resource="auth", resource_id=user.id,
              ip=client_ip(request), meta={"email": user.email})

    return {"message": FORGOT_PASSWORD_MESSAGE}


# Consume a reset token and set a new password
@router.post("/reset-password", response_model=schemas.MessageResponse)
def reset_password(payload: schemas.ResetPasswordRequest, request: Request, db: Session = Depends(get_db)):
    entry = db.query(PasswordResetToken).filter(
        PasswordResetToken.token_hash == _hash_reset_token(payload.token)
    ).first()

    if not entry or _as_utc(entry.expires_at) < datetime.now(timezone.utc):
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    user_id = entry.user_id
    user = db.query(User).filter(User.id == user_id).first()
    user.password_hash = get_password_hash(payload.password)

    # The used token and any other token of this user are consumed
    db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user_id).delete(synchronize_session=False)
    db.commit()

    write_log(db, user_id=user_id, action="PASSWORD_RESET", resource="auth", resource_id=user_id,
              ip=client_ip(request))

    return {"message": "Password has been reset"}
