from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


def _split_csv(raw: str) -> list[str]:
    return [x.strip() for x in raw.split(",") if x.strip()]


def _env_int(env: Mapping[str, str], name: str, *, default: int, minimum: int = 0) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, value)


def _env_float(env: Mapping[str, str], name: str, *, default: float, minimum: float = 0.0) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(minimum, value)


@dataclass(frozen=True)
class Settings:
    store_backend: str
    sqlite_path: str
    postgres_dsn: str
    postgres_table: str
    default_series_prefix: str
    max_allocation_batch: int
    source_crs: str
    nearby_radius_km: float
    nearby_limit: int
    cors_allow_origins: list[str]
    log_level: str

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            store_backend=env.get("CADASTRE_STORE_BACKEND", "memory").strip().lower() or "memory",
            sqlite_path=env.get("CADASTRE_STORE_SQLITE_PATH", ".local/cadastre-store.sqlite3"),
            postgres_dsn=env.get("POSTGRES_DSN", "").strip(),
            postgres_table=env.get("CADASTRE_STORE_POSTGRES_TABLE", "cadastre_store_state").strip()
            or "cadastre_store_state",
            default_series_prefix=env.get("PILLAR_SERIES_PREFIX", "SC/CN").strip() or "SC/CN",
            max_allocation_batch=_env_int(env, "PILLAR_MAX_BATCH", default=50, minimum=1),
            source_crs=env.get("PILLAR_SOURCE_CRS", "EPSG:32632").strip() or "EPSG:32632",
            nearby_radius_km=_env_float(env, "PILLAR_NEARBY_RADIUS_KM", default=5.0),
            nearby_limit=_env_int(env, "PILLAR_NEARBY_LIMIT", default=10, minimum=1),
            cors_allow_origins=_split_csv(
                env.get("CORS_ALLOW_ORIGINS", "http://127.0.0.1:3000,http://localhost:3000")
            ),
            log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )
