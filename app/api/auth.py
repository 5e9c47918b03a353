from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user
from schemas.auth import RegisterIn, RegisteredOut, LoginIn, TokenOut, UserOut
from models.orm_user import UserEntity
from services.auth_service import authenticate, register_user


router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", response_model=RegisteredOut, status_code=201)
def register(data: RegisterIn, db: Session = Depends(get_db)):
    user = register_user(
        db,
        username=data.username,
        email=data.email,
        password=data.password,
        contact_number=data.contact_number,
    )
    return RegisteredOut(user_id=user.id)


@router.post("/login", response_model=TokenOut)
def login(data: LoginIn, db: Session = Depends(get_db)):
    return TokenOut(access_token=authenticate(db, data.username, data.password))


@router.get("/me", response_model=UserOut)
def me(user: UserEntity = Depends(get_current_user)):
    return user
