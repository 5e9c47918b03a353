from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from db.session import SessionLocal
from models.orm_user import UserEntity
from core.exceptions import AuthenticationError
from services.auth_service import decode_token, find_user
from services.payment_service import verify_callback_signature

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> UserEntity:
    try:
        payload = decode_token(token)
    except ValueError:
        raise _unauthorized("Invalid or expired token")

    user_id = payload.get("user_id")
    if not user_id:
        raise _unauthorized("Invalid token")

    user = find_user(db, int(user_id))
    if not user or not user.is_active:
        raise _unauthorized("User not found or inactive")
    return user


def require_admin(user: UserEntity = Depends(get_current_user)) -> UserEntity:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return user


async def verify_gateway_signature(
    request: Request,
    x_gateway_signature: str | None = Header(default=None),
) -> None:
    # HMAC-SHA256 of the raw body with PAYMENT_CALLBACK_SECRET, hex encoded
    body = await request.body()
    if not verify_callback_signature(body, x_gateway_signature):
        raise AuthenticationError("Invalid gateway signature")
