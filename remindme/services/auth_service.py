from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional
from fastapi import Depends, HTTPException
from jose import JWTError, jwt
from starlette import status
from remindme.config import settings
from fastapi.security import OAuth2PasswordBearer

SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM

# Tokens are issued by the sign-in service; this API only verifies them
oauth2_bearer = OAuth2PasswordBearer(tokenUrl="auth/token")


def create_access_token(
    email: str,
    user_id: int,
    expires_delta: timedelta,
    device_id: Optional[int] = None,
):
    encode = {"sub": email, "id": user_id}
    if device_id is not None:
        encode["device_id"] = device_id
    expires = datetime.now(timezone.utc) + expires_delta
    encode.update({"exp": expires})
    return jwt.encode(encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Return the caller identity from a bearer token or raise 401."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not authenticate user",
        )
    email: str = payload.get("sub")
    user_id: int = payload.get("id")
    if not email or not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not authenticate user",
        )
    return {"email": email, "id": user_id, "device_id": payload.get("device_id")}


def get_current_user(token: Annotated[str, Depends(oauth2_bearer)]):
    return decode_access_token(token)
