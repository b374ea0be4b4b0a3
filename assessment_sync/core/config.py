from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Assessment Sync"

    # Remote tracker
    TRACKER_TYPE: str = "github"
    TRACKER_URL: str = "https://api.github.com"
    TRACKER_TOKEN: str = ""
    TRACKER_PROJECT: str = ""
    ASSESSMENT_TAG: str = "Well-Architected"

    # Aggregation & labelling
    MINIMUM_REPORT_LEVEL: int = 65
    MAX_LABEL_LENGTH: int = 50

    # Report
    TOP_RECOMMENDATIONS: int = 5
    MAX_SLIDES: int = 20

    # Rate limiting
    RATE_LIMIT_LOW_WATER_MARK: int = 2000
    RATE_LIMIT_COOLDOWN_SECONDS: float = 10.0
    MIN_REQUEST_INTERVAL_SECONDS: float = 1.0
    THROTTLE_BACKOFF_SECONDS: float = 300.0
    MAX_PAGES: int = 50
    HTTP_TIMEOUT: float = 30.0

    LOG_LEVEL: str = "INFO"

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
