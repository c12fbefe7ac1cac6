from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_NAME: str = "Activity Feed"
    DEBUG: bool = False

    # Remote account the feed is fetched for
    SERVER_URL: str = "http://localhost:8080"
    ACCOUNT_USER: str = ""
    ACCOUNT_PASSWORD: str = ""
    ACCOUNT_DISPLAY_NAME: str = ""
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    ACTIVITY_PAGE_SIZE: int = 50
    MAX_ACTION_BUTTONS: int = 2
    MAX_ACTIVITIES: int = 100
    MAX_ACTIVITIES_DAYS: int = 30
    REFRESH_INTERVAL_MINUTES: int = 5


settings = Settings()
