# ============================================================
# SQLA - SQL Assistant
# config.py - Central Configuration Management
# ============================================================

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field
from dotenv import load_dotenv

# Load .env file
BASE_DIR = Path(__file__).parent
load_dotenv(BASE_DIR / ".env")


class ApiConfig(BaseSettings):
    """Backend (generation + database access service) configuration."""
    base_url: str = Field(default="http://localhost:8080/api")
    timeout: float = Field(default=30.0)
    auth_token: Optional[str] = Field(default=None)

    class Config:
        env_prefix = "SQLA_API_"
        extra = "ignore"

    def get_headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers


class AppConfig(BaseSettings):
    """Application-level configuration."""
    name: str = Field(default="SQLA")
    version: str = Field(default="1.0.0")
    log_level: str = Field(default="INFO")
    log_file: str = Field(default="logs/sqla.log")

    class Config:
        env_prefix = "SQLA_"
        extra = "ignore"


# ── Singleton Config Instances ────────────────────────────────
api_config = ApiConfig()
app_config = AppConfig()
