# Application settings, read from the environment (or a local .env file).
import re

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Plain or schema-qualified identifier, e.g. "AddProductToWarehouse" or "dbo.AddProductToWarehouse".
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database - NO DEFAULT (will fail if not set)
    DATABASE_URL: str
    DB_ECHO: bool = False

    # Create missing tables on startup (check-first, not a migration tool)
    CREATE_TABLES: bool = True

    API_PREFIX: str = "/api"
    PROCEDURE_NAME: str = "AddProductToWarehouse"

    LOG_LEVEL: str = "INFO"

    @field_validator("PROCEDURE_NAME")
    @classmethod
    def validate_procedure_name(cls, v: str) -> str:
        # The name is interpolated into the statement, so only identifiers pass.
        if not _IDENTIFIER.match(v):
            raise ValueError(f"Invalid stored procedure name: {v!r}")
        return v

    @field_validator("API_PREFIX")
    @classmethod
    def normalize_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = "/" + v
        return v


settings = Settings()
