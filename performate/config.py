from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'Performate'
    app_env: str = 'local'
    app_timezone: str = 'Asia/Kolkata'
    database_url: str = 'sqlite:///./performate.db'
    auth_secret: str = 'change-me'
    auth_session_max_age_days: int = 30
    fine_per_tally: int = 10
    star_tally_offset: int = 2
    retry_max_attempts: int = 2
    retry_initial_delay_ms: int = 100
    history_page_size: int = 100
    db_slow_query_ms: int = 100
    metrics_slow_ms: int = 200


settings = Settings()
