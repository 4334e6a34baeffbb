from typing import FrozenSet, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from app.core.enums import PrincipalRole

_DEFAULT_ELEVATED_ROLES = ",".join(
    r.value for r in (PrincipalRole.ADMIN, PrincipalRole.CLASS_LEADER, PrincipalRole.SECRETARY)
)


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    # Per-call ceiling for persistence adapter calls; None leaves it to the driver.
    db_timeout_seconds: Optional[float] = Field(None, alias="DB_TIMEOUT_SECONDS")

    # Tokens are issued by the external identity provider; we only verify them.
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    jwt_audience: Optional[str] = Field(None, alias="JWT_AUDIENCE")

    # Comma separated, e.g. "admin,class_leader,secretary".
    elevated_roles: str = Field(_DEFAULT_ELEVATED_ROLES, alias="ELEVATED_ROLES")
    # Render Forbidden like NotFound on lookups so callers cannot learn whether a record exists.
    conceal_forbidden: bool = Field(True, alias="CONCEAL_FORBIDDEN")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_format: str = Field("dev", alias="LOG_FORMAT")  # dev | json

    @property
    def elevated_role_set(self) -> FrozenSet[str]:
        return frozenset(r.strip() for r in self.elevated_roles.split(",") if r.strip())

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
