import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    database_name: Optional[str] = None
    kv_collection: str = "kv"
    log_level: str = "INFO"
    port: int = 8000
    frontend_url: str = "*"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            database_name=os.getenv("DATABASE_NAME") or None,
            kv_collection=os.getenv("MEDTRACK_KV_COLLECTION", "kv"),
            log_level=os.getenv("MEDTRACK_LOG_LEVEL", "INFO").upper(),
            port=int(os.getenv("PORT", "8000")),
            frontend_url=os.getenv("FRONTEND_URL") or "*",
        )

    @property
    def uses_mongo(self) -> bool:
        return bool(self.database_url and self.database_name)
