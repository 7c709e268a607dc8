from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = "sqlite:///./lab_report_insights.db"
    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    allowed_origins: str = "http://localhost:8501"

    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    chat_model: str = "gpt-4o-mini"
    llama_cloud_api_key: str | None = None

    aws_region: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_bucket_name: str | None = None
    upload_url_expires_seconds: int = 60
    download_url_expires_seconds: int = 3600
    file_fetch_timeout_seconds: float = 60.0

    max_document_size_mb: int = 10
    max_image_size_mb: int = 5
    chat_max_duration_seconds: float = 30.0

    api_base_url: str = "http://localhost:8000"


settings = Settings()
