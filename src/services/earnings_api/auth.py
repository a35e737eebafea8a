# src/services/earnings_api/auth.py
"""
Аутентификация по Bearer JWT.

Токен подписан одним из ротируемых ключей: заголовок `kid` выбирает
секрет из JWT_KEYS, токены без kid проверяются legacy-секретом JWT_SECRET.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from src.common.constants import UserRole
from src.common.errors import ForbiddenError, UnauthorizedError

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CallerIdentity:
    """Идентичность вызывающего из claims токена."""
    user_id: UUID
    email: str = ""
    role: str = UserRole.RIDER.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class KeyProvider:
    """Выбор секрета проверки подписи по kid."""

    def __init__(self, keys: dict[str, str], legacy_secret: str = "", algorithm: str = "HS256") -> None:
        self._keys = dict(keys)
        self._legacy_secret = legacy_secret
        self.algorithm = algorithm

    def resolve(self, kid: Optional[str]) -> str:
        if kid:
            secret = self._keys.get(kid)
            if secret is None:
                raise UnauthorizedError("unknown signing key")
            return secret
        if not self._legacy_secret:
            raise UnauthorizedError("token key id is required")
        return self._legacy_secret

    def decode(self, token: str) -> CallerIdentity:
        try:
            header = jwt.get_unverified_header(token)
            secret = self.resolve(header.get("kid"))
            claims = jwt.decode(token, secret, algorithms=[self.algorithm])
        except JWTError:
            raise UnauthorizedError("invalid or expired token")

        subject = claims.get("user_id") or claims.get("sub")
        if not subject:
            raise UnauthorizedError("token has no subject")
        try:
            user_id = UUID(str(subject))
        except ValueError:
            raise UnauthorizedError("token subject is not a valid id")

        return CallerIdentity(
            user_id=user_id,
            email=claims.get("email") or "",
            role=claims.get("role") or UserRole.RIDER.value,
        )


_key_provider: KeyProvider | None = None


def get_key_provider() -> KeyProvider:
    """Провайдер ключей по настройкам (создаётся один раз)."""
    global _key_provider
    if _key_provider is None:
        from src.config import settings
        _key_provider = KeyProvider(
            keys=settings.auth.JWT_KEYS,
            legacy_secret=settings.auth.JWT_SECRET,
            algorithm=settings.auth.JWT_ALGORITHM,
        )
    return _key_provider


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    key_provider: KeyProvider = Depends(get_key_provider),
) -> CallerIdentity:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("missing bearer token")
    return key_provider.decode(credentials.credentials)


async def require_admin(caller: CallerIdentity = Depends(get_current_user)) -> CallerIdentity:
    if not caller.is_admin:
        raise ForbiddenError("admin role required")
    return caller
