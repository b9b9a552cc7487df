"""
Runtime configuration for CPM Inventory

Everything comes from environment variables so the same build runs locally and in deployment.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List


def _split_origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str
    database_name: str
    allowed_origins: List[str]
    port: int
    log_level: str


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
        database_name=os.getenv("DATABASE_NAME", "cpm_inventory"),
        allowed_origins=_split_origins(os.getenv("ALLOWED_ORIGINS", "http://localhost:3000")),
        port=int(os.getenv("PORT", 8000)),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
