from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import jwt

from cadastre.errors import AuthenticationError, AuthorizationError
from cadastre.workflow import Role


def _split_csv(raw: str) -> list[str]:
    return [x.strip() for x in raw.split(",") if x.strip()]


def redact_sensitive(value: object) -> object:
    sensitive_keys = {"authorization", "token", "secret", "password", "api_key", "apikey", "access_token"}
    if isinstance(value, dict):
        redacted: dict[str, object] = {}
        for key, item in value.items():
            if str(key).lower() in sensitive_keys:
                redacted[str(key)] = "***REDACTED***"
            else:
                redacted[str(key)] = redact_sensitive(item)
        return redacted
    if isinstance(value, list):
        return [redact_sensitive(x) for x in value]
    return value


@dataclass(frozen=True)
class Actor:
    actor_id: str
    role: Role


@dataclass
class ActorIdentityConfig:
    enabled: bool
    issuer: str
    audience: str
    shared_secret: str
    role_claim: str
    required_claims: list[str]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ActorIdentityConfig":
        env = os.environ if environ is None else environ
        issuer = env.get("JWT_ISSUER", "").strip()
        audience = env.get("JWT_AUDIENCE", "").strip()
        shared_secret = env.get("JWT_SHARED_SECRET", "").strip()
        return cls(
            enabled=bool(shared_secret),
            issuer=issuer,
            audience=audience,
            shared_secret=shared_secret,
            role_claim=env.get("JWT_ROLE_CLAIM", "role").strip() or "role",
            required_claims=_split_csv(env.get("JWT_REQUIRED_CLAIMS", "sub,exp")),
        )


def parse_role(raw: Any) -> Role:
    try:
        return Role(str(raw or "").strip().upper())
    except ValueError:
        raise AuthenticationError(f"unknown actor role: {raw!r}") from None


def actor_from_bearer_token(*, authorization: str | None, cfg: ActorIdentityConfig) -> Actor | None:
    if not authorization:
        return None
    prefix = "Bearer "
    if not authorization.startswith(prefix):
        raise AuthenticationError("invalid Authorization header")
    token = authorization[len(prefix) :].strip()
    if not token:
        raise AuthenticationError("empty bearer token")
    options: dict[str, Any] = {"require": list(cfg.required_claims)}
    try:
        claims = jwt.decode(
            token,
            cfg.shared_secret,
            algorithms=["HS256"],
            issuer=cfg.issuer or None,
            audience=cfg.audience or None,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("token expired") from None
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError(f"invalid token: {exc}") from None
    subject = str(claims.get("sub", "")).strip()
    if not subject:
        raise AuthenticationError("token subject missing")
    return Actor(actor_id=subject, role=parse_role(claims.get(cfg.role_claim)))


def actor_from_headers(headers: Mapping[str, str]) -> Actor | None:
    actor_id = (headers.get("x-actor-id") or "").strip()
    role_raw = (headers.get("x-actor-role") or "").strip()
    if not actor_id and not role_raw:
        return None
    if not actor_id:
        raise AuthenticationError("x-actor-id header is required with x-actor-role")
    return Actor(actor_id=actor_id, role=parse_role(role_raw))


def require_actor(actor: Actor | None) -> Actor:
    if actor is None:
        raise AuthenticationError()
    return actor


def require_role(actor: Actor | None, role: Role, *, action: str) -> Actor:
    current = require_actor(actor)
    if current.role is not role:
        raise AuthorizationError(f"{action} requires role {role.value}, actor has {current.role.value}")
    return current
