from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from errors import ERROR_INCORRECT_LOGIN, ERROR_UNAUTHENTICATED, NotFoundError, UnauthorizedError
from settings import JWT_ACCESS_EXPIRATION_MINUTES, JWT_ALGORITHM, JWT_SECRET
import user_service

TOKEN_TYPE_ACCESS = "access"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def generate_token(user_id: str, expires: datetime, token_type: str = TOKEN_TYPE_ACCESS) -> str:
    payload = {
        "sub": user_id,
        "type": token_type,
        "iat": datetime.now(timezone.utc),
        "exp": expires,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def generate_auth_tokens(user: dict) -> dict:
    expires = datetime.now(timezone.utc) + timedelta(minutes=JWT_ACCESS_EXPIRATION_MINUTES)
    token = generate_token(str(user["_id"]), expires)
    return {"access": {"token": token, "expires": expires.isoformat()}}


def login_user_with_email_and_password(email: str, password: str) -> dict:
    user = user_service.get_user_by_email(email)
    if not user or not user_service.is_password_match(user, password):
        raise UnauthorizedError(ERROR_INCORRECT_LOGIN)
    return user


def verify_token(token: str) -> str:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        raise UnauthorizedError(ERROR_UNAUTHENTICATED)
    if payload.get("type") != TOKEN_TYPE_ACCESS or not payload.get("sub"):
        raise UnauthorizedError(ERROR_UNAUTHENTICATED)
    return payload["sub"]


def get_current_user(token: str = Depends(oauth2_scheme)) -> dict:
    if not token:
        raise UnauthorizedError(ERROR_UNAUTHENTICATED)
    user_id = verify_token(token)
    try:
        return user_service.get_user_by_id(user_id)
    except NotFoundError:
        raise UnauthorizedError(ERROR_UNAUTHENTICATED)
