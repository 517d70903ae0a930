from typing import Optional

from fastapi import Depends, Header, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError

from subtracker.core import config
from subtracker.db.session import SessionLocal

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=True)


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    """Get the identity provider's user id (the `sub` claim) from a JWT."""
    if not config.SECRET_KEY:
        raise HTTPException(status_code=401, detail="Token verification is not configured")
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        user_id: Optional[str] = payload.get("sub")

        if user_id is None:
            raise HTTPException(status_code=401, detail="Invalid token")

        return str(user_id)

    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def verify_dispatch_token(x_dispatch_token: Optional[str] = Header(None)) -> None:
    """Guard the scheduler-facing endpoints when DISPATCH_TOKEN is configured."""
    if config.DISPATCH_TOKEN and x_dispatch_token != config.DISPATCH_TOKEN:
        raise HTTPException(status_code=401, detail="Invalid dispatch token")
