# claimease/core/config.py
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    # ===================================
    # APPLICATION SETTINGS
    # ===================================
    APP_NAME: str = "ClaimEase - Insurance Management System"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # ===================================
    # API SETTINGS
    # ===================================
    API_PREFIX: str = "/api"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # ===================================
    # AUTHENTICATION
    # ===================================
    JWT_SECRET: str = "claimease-dev-secret-change-me"
    JWT_REFRESH_SECRET: str = "claimease-dev-refresh-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7
    JWT_REFRESH_EXPIRE_DAYS: int = 7
    BCRYPT_ROUNDS: int = 10
    PASSWORD_MIN_LENGTH: int = 8
    RESET_TOKEN_EXPIRE_MINUTES: int = 10

    # ===================================
    # LOGGING
    # ===================================
    LOG_LEVEL: str = "info"  # Options: "error", "warn", "info", "debug"
    LOG_FILE_PATH: str = "./logs"
    LOG_TO_FILE: bool = True

    # ===================================
    # LLM PROVIDER SELECTION (chatbot)
    # ===================================
    LLM_PROVIDER: str = "google"  # Options: "groq", "google", "ollama"
    LLM_TEMPERATURE: float = 0.3
    LLM_MAX_TOKENS: int = 1024

    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.3-70b-versatile"

    GOOGLE_API_KEY: Optional[str] = None
    GOOGLE_MODEL: str = "gemini-2.0-flash-lite"

    OLLAMA_MODEL: Optional[str] = None

    # ===================================
    # FILE STORAGE
    # ===================================
    DATA_DIR: str = "data"
    UPLOAD_DIR: str = "uploads"
    MAX_FILE_SIZE_MB: int = 5
    MAX_FILES_PER_UPLOAD: int = 10

    # ===================================
    # RATE LIMITING
    # ===================================
    RATE_LIMIT_ENABLED: bool = True
    # Read the client address from X-Forwarded-For; enable only behind a proxy that sets it
    TRUST_PROXY: bool = False
    RATE_LIMIT_REQUESTS: int = 500
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    AUTH_RATE_LIMIT_REQUESTS: int = 5
    AUTH_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    PASSWORD_RESET_LIMIT_REQUESTS: int = 3
    PASSWORD_RESET_WINDOW_SECONDS: int = 60 * 60

    # ===================================
    # BUSINESS RULES
    # ===================================
    MIN_COVERAGE_AMOUNT: float = 1000
    MIN_PREMIUM_AMOUNT: float = 100
    MAX_POLICY_DURATION_YEARS: int = 50
    MIN_CUSTOMER_AGE: int = 18
    MAX_CUSTOMER_AGE: int = 120
    GATEWAY_FEE_RATE: float = 0.02
    GST_RATE: float = 0.18

    # ===================================
    # COMPUTED PROPERTIES
    # ===================================
    @property
    def max_file_size_bytes(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024

    @property
    def is_llm_configured(self) -> bool:
        """Check if the selected chatbot provider has credentials."""
        provider = self.LLM_PROVIDER.lower()
        if provider == "groq":
            return bool(self.GROQ_API_KEY)
        if provider == "google":
            return bool(self.GOOGLE_API_KEY)
        if provider == "ollama":
            return bool(self.OLLAMA_MODEL)
        return False

    # ===================================
    # PYDANTIC CONFIG
    # ===================================
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "allow"


# ===================================
# SINGLETON PATTERN
# ===================================
@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
