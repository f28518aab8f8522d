# erapport/api/routers/auth.py - Register and log in instructors
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from erapport.api.deps.store import get_db
from erapport.api.errors import to_http
from erapport.core.errors import ERapportError
from erapport.schemas.auth import AuthOut, LoginIn, RegisterIn, UserOut
from erapport.services.auth_service import AuthService, InvalidCredentials

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/register", response_model=AuthOut, status_code=status.HTTP_201_CREATED)
def register(user_data: RegisterIn, db: Session = Depends(get_db)):
    """Create an instructor account and return its first token"""
    try:
        user, token = AuthService(db).register(user_data.name, user_data.email, user_data.password)
    except ERapportError as e:
        raise to_http(e)

    return AuthOut(user=UserOut(id=user.id, name=user.name, email=user.email), token=token)


@router.post("/login", response_model=AuthOut)
def login(credentials: LoginIn, db: Session = Depends(get_db)):
    """Check credentials; a successful login revokes tokens issued before it"""
    try:
        user, token = AuthService(db).login(credentials.email, credentials.password)
    except InvalidCredentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    return AuthOut(user=UserOut(id=user.id, name=user.name, email=user.email), token=token)
