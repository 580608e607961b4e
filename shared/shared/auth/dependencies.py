from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from shared.auth.config import AuthSettings
from shared.models.user import TokenClaims

http_bearer = HTTPBearer(auto_error=False)


def get_auth_settings() -> AuthSettings:
    return AuthSettings()


def decode_token(token: str, settings: AuthSettings) -> dict:
    payload = jwt.decode(
        token,
        settings.secret,
        algorithms=[settings.algorithm],
        issuer=settings.issuer,
        audience=settings.audience,
    )
    return payload


def _payload_to_claims(payload: dict) -> TokenClaims:
    external_id = payload.get("sub")
    if not external_id:
        raise ValueError("Missing sub in token")
    return TokenClaims(
        external_id=str(external_id),
        email=payload.get("email") or "",
        name=payload.get("name"),
        first_name=payload.get("given_name"),
        last_name=payload.get("family_name"),
        image_url=payload.get("picture"),
    )


async def get_token_claims_optional(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    settings: AuthSettings = Depends(get_auth_settings),
) -> TokenClaims | None:
    if not credentials or not credentials.credentials:
        return None
    try:
        payload = decode_token(credentials.credentials, settings)
        return _payload_to_claims(payload)
    except (JWTError, ValueError, KeyError):
        return None


async def get_token_claims_required(
    claims: TokenClaims | None = Depends(get_token_claims_optional),
) -> TokenClaims:
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims
