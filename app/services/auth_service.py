from datetime import datetime, timedelta, timezone

import bcrypt
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from core.exceptions import AuthenticationError, ConflictError
from core.settings import settings
from models.orm_user import UserEntity


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(*, user_id: int) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"user_id": user_id, "exp": exp}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise ValueError("Invalid or expired token")


def register_user(
    db: Session,
    *,
    username: str,
    email: str,
    password: str,
    contact_number: str | None = None,
) -> UserEntity:
    if db.query(UserEntity).filter(UserEntity.username == username).first():
        raise ConflictError("Username already exists")
    if db.query(UserEntity).filter(UserEntity.email == email).first():
        raise ConflictError("Email already exists")

    user = UserEntity(
        username=username,
        email=email,
        password_hash=hash_password(password),
        contact_number=contact_number,
        is_admin=False,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def authenticate(db: Session, username: str, password: str) -> str:
    user = (
        db.query(UserEntity)
        .filter(UserEntity.username == username, UserEntity.is_active.is_(True))
        .first()
    )
    if not user or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    return create_access_token(user_id=user.id)


def find_user(db: Session, user_id: int) -> UserEntity | None:
    return db.query(UserEntity).filter(UserEntity.id == user_id).first()
