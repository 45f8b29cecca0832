from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./cafe_pos.db"
    cafe_timezone: str = "UTC"
    upload_dir: str = "./uploads"
    log_level: str = "INFO"
    create_tables_on_startup: bool = True

    model_config = SettingsConfigDict(env_file=".env", env_prefix="", case_sensitive=False)


settings = Settings()
