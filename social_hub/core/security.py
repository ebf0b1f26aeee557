from typing import Optional
from jose import JWTError, jwt

from social_hub.core.config import settings


def decode_access_token(token_data: str) -> Optional[dict]:
    """
    Decodes the JWT access token.
    Returns the payload dictionary if valid, None otherwise.
    """
    try:
        return jwt.decode(token_data, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError: # Catches expired signature, invalid signature, etc.
        return None


def user_id_from_token(token_data: str) -> Optional[str]:
    """Returns the stable user id (the `sub` claim) or None."""
    payload = decode_access_token(token_data)
    if not payload:
        return None
    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        return None
    return user_id
