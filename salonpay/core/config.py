from datetime import date
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    APP_NAME: str = Field("salonpay", description="Logger namespace and app label")
    DB_URL: str = Field("sqlite:///./data/salonpay.db", description="Database URL")
    DB_TIMEOUT_SECONDS: float = Field(15.0, description="Max wait on a locked row/database before the transaction is abandoned")

    LOG_LEVEL: str = "INFO"
    AUDIT_LOG_PATH: str = "./data/logs"

    # First billable day for employees that were never paid out
    PAYROLL_EPOCH_DATE: date = Field(date(2024, 1, 1), description="Fallback start of the first pay period")

    # Commission stamped on completed work: floor(price * rate)
    SALARY_COMMISSION_RATE: float = 0.1
    SALARY_EXPENSE_CATEGORY: str = "SALARY"

settings = Settings()
