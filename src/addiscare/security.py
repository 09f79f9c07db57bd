"""JWT helpers. Tokens are minted by the account service; this API only verifies them."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from addiscare.config import settings


def create_access_token(
    user_id: str,
    role: str,
    name: str | None = None,
    expires_minutes: int | None = None,
) -> str:
    """Mint an access token (scripts, tests and local development)."""
    now = datetime.now(timezone.utc)
    ttl = expires_minutes if expires_minutes is not None else settings.jwt_access_token_expire_minutes
    claims = {
        "sub": user_id,
        "role": role,
        "name": name or user_id,
        "type": "access",
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + timedelta(minutes=ttl),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """Return the verified claims or raise ``ValueError``."""
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError as exc:
        raise ValueError(f"Invalid token: {exc}") from exc
    if claims.get("type") != "access":
        raise ValueError("Not an access token")
    return claims
