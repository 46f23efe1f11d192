from pydantic_settings import BaseSettings
from typing import List


def split_origins(raw: str) -> List[str]:
    """Comma separated origins; blanks are ignored"""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # -- Application --
    APP_NAME: str = "Credentials Portal"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # -- Database --
    DATABASE_URL: str
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_AUTO_CREATE: bool = True  # create tables on startup (no migrations)

    # -- Authentication --
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    BCRYPT_ROUNDS: int = 12  # 4 for tests (fast), 12 for prod

    # Fernet key for secrets kept reversible (TOTP secrets, pending
    # directory passwords). Derived from SECRET_KEY when empty.
    ENCRYPTION_KEY: str = ""

    # -- LDAP Directory --
    LDAP_URL: str = "ldap://localhost:389"
    LDAP_USE_SSL: bool = False
    LDAP_BIND_DN: str = ""
    LDAP_BIND_PASSWORD: str = ""
    LDAP_SEARCH_BASE: str = "DC=uniss,DC=edu,DC=cu"
    LDAP_DOMAIN: str = "uniss.edu.cu"
    LDAP_CONNECT_TIMEOUT: int = 10  # seconds

    # -- Institution --
    INSTITUTIONAL_EMAIL_DOMAIN: str = "uniss.edu.cu"
    STUDENT_REGISTRY_URL: str = "https://sigenu.uniss.edu.cu/sigenu-rest"
    STUDENT_REGISTRY_TIMEOUT: float = 10.0

    # -- Frontend --
    FRONTEND_URL: str = "http://localhost:3000"

    # -- Email --
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_START_TLS: bool = True
    EMAIL_FROM: str = "noreply@uniss.edu.cu"
    EMAIL_FROM_NAME: str = "Credenciales UNISS"
    EMAIL_DAILY_LIMIT: int = 500

    # -- Password Recovery --
    VERIFICATION_CODE_TTL_MINUTES: int = 10
    RECOVERY_SESSION_TTL_MINUTES: int = 15
    RECOVERY_MAX_VERIFY_ATTEMPTS: int = 5  # wrong codes or PINs before the session is closed
    RECOVERY_REDIRECT_PATH: str = "/login"
    RECOVERY_REDIRECT_DELAY_SECONDS: int = 3
    TOTP_ISSUER: str = "Credenciales UNISS"
    TOTP_VALID_WINDOW: int = 2  # periods accepted on each side

    # -- Directory Sync Job --
    SYNC_JOB_ENABLED: bool = True
    SYNC_INTERVAL_MINUTES: int = 15

    # -- Password Expiry Alerts --
    PASSWORD_MAX_AGE_DAYS: int = 90  # directory maxPwdAge
    EXPIRY_ALERTS_ENABLED: bool = True
    EXPIRY_ALERT_HOUR: int = 8  # server local time

    # -- Devices / MAC Vendor Lookup --
    MAX_DEVICES_PER_USER: int = 4
    MACVENDORS_API_URL: str = "https://api.macvendors.com"
    MACLOOKUP_API_URL: str = "https://maclookup.app/api/v2/macs"
    MAC_LOOKUP_TIMEOUT: float = 5.0

    # -- CORS (stored as comma-separated string, parsed to list) --
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Origins allowed to call the API from a browser"""
        return split_origins(self.CORS_ORIGINS_STR)

    # -- Rate Limiting --
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URL: str = "memory://"
    RATE_LIMIT_PER_MINUTE: int = 60

    # -- Logging --
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
