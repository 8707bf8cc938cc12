from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Commission Payout Engine"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql://payout_user:payout_pass@db:5432/payout_db"
    DATABASE_ECHO: bool = False

    # Ingestion
    # When False, uploads referencing an unknown payee are rejected.
    AUTO_PROVISION_PAYEES: bool = False
    # Recalculate every month after the upload month that already has a summary
    FORWARD_PROPAGATION: bool = True

    # Admin purge: default lower bound for "delete since locked month"
    LAST_LOCKED_MONTH: str = "2025-07"

    # Default schedules for auto-provisioned payees (rates as decimals)
    RECRUITER_BASE_RATE: float = 0.02
    RECRUITER_ELEVATED_RATE: float = 0.03
    RECRUITER_THRESHOLD: float = 30000
    RECRUITER_EXCESS_BONUS_RATE: float = 0.02

    RECRUITMENT_MANAGER_BASE_RATE: float = 0.01
    RECRUITMENT_MANAGER_TIER1_RATE: float = 0.0025
    RECRUITMENT_MANAGER_TIER1_THRESHOLD: float = 100000
    RECRUITMENT_MANAGER_TIER2_RATE: float = 0.005
    RECRUITMENT_MANAGER_TIER2_THRESHOLD: float = 150000

    # Frontend origin allowed by CORS
    FRONTEND_URL: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
