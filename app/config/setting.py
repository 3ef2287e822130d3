from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "finance-tracker"
    environment: str = "development"
    allowed_origins: str = "http://localhost:3000"

    @property
    def parsed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    # MongoDB settings
    mongo_db_name: str = "finance_tracker"
    mongo_uri: str = "mongodb://localhost:27017"

    # JWT settings
    jwt_secret_key: str = "change-me-dev-only-secret-key-0123456789"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
