from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "PowerGen Back Office"
    DATABASE_URL: str = "sqlite:///./powergen.db"
    LOG_LEVEL: str = "INFO"

    # CORS origins for the browser front end
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Tax and document defaults (India GST)
    DEFAULT_GST_RATE: int = 18
    DEFAULT_VALIDITY_DAYS: int = 30
    DEFAULT_TRANSPORT_HSN: str = "998399"
    DEFAULT_LOCATION_NAME: str = "Main Office"

    # Company defaults used until general settings are saved
    COMPANY_NAME: str = "PowerGen Services"
    COMPANY_ADDRESS: str = ""
    COMPANY_PHONE: str = ""
    COMPANY_EMAIL: str = ""

    # File storage (QR code images)
    FILE_STORAGE_PATH: str = "/tmp/powergen-files"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    # Outbound API client used by the form sessions
    API_BASE_URL: str = "http://localhost:8000/api/v1"
    API_TIMEOUT_SECONDS: float = 30.0


settings = Settings()
