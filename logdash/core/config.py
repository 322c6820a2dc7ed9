from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field, validator


class Settings(BaseSettings):
    # Application
    app_name: str = "Docker Log Dashboard"
    app_version: str = "0.1.0"
    debug: bool = Field(False)

    # Server
    host: str = Field("0.0.0.0")
    port: int = Field(8080)
    log_level: str = Field("INFO")

    # Docker (same variables the docker CLI reads)
    docker_host: Optional[str] = Field(None)
    docker_api_version: str = Field("auto")
    docker_tls_verify: bool = Field(False)
    docker_cert_path: Optional[str] = Field(None)
    docker_timeout: int = Field(60)

    # Log streaming
    log_tail: str = Field("all")

    # CORS
    cors_origins: List[str] = Field(["*"])
    cors_allow_methods: List[str] = ["GET"]
    cors_allow_headers: List[str] = ["*"]

    @validator("log_level", pre=True)
    def normalize_log_level(cls, v):
        return str(v).upper()

    @validator("log_tail", pre=True)
    def validate_log_tail(cls, v):
        value = str(v).strip().lower()
        if value != "all" and not value.isdigit():
            raise ValueError("log_tail must be 'all' or a non-negative integer")
        return value

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
