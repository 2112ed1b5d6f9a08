"""Configuration management for the autoinvoice application."""

import os
from dataclasses import dataclass

DEFAULT_INFERENCE_API_URL = "https://openrouter.ai/api/v1"
DEFAULT_INFERENCE_MODEL = "openai/gpt-4o-mini"
DEFAULT_GMAIL_QUERY = "subject:invoice has:attachment newer_than:30d"


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # Database
    database_url: str

    # S3-compatible object storage (Supabase Storage, R2, S3)
    s3_endpoint: str
    s3_bucket: str
    s3_public_url: str
    aws_access_key_id: str
    aws_secret_access_key: str

    # OAuth
    google_oauth2_client_id: str
    google_oauth2_client_secret: str
    google_oauth2_redirect_uri: str

    # Inference
    openrouter_api_key: str

    # Web session
    session_secret: str

    inference_api_url: str = DEFAULT_INFERENCE_API_URL
    inference_model: str = DEFAULT_INFERENCE_MODEL

    # Gmail search
    gmail_query: str = DEFAULT_GMAIL_QUERY
    gmail_max_results: int = 10

    # PDF rasterization
    raster_dpi: int = 150

    # Frontend
    frontend_url: str = "http://localhost:5173"
    cors_origins: str = "http://localhost:5173"

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config: Configuration object

        Raises:
            ValueError: If required environment variables are missing
        """
        required_vars = [
            "DATABASE_URL",
            "S3_ENDPOINT",
            "S3_BUCKET",
            "S3_PUBLIC_URL",
            "AWS_ACCESS_KEY_ID",
            "AWS_SECRET_ACCESS_KEY",
            "GOOGLE_OAUTH2_CLIENT_ID",
            "GOOGLE_OAUTH2_CLIENT_SECRET",
            "GOOGLE_OAUTH2_REDIRECT_URI",
            "OPENROUTER_API_KEY",
            "SESSION_SECRET",
        ]

        missing = [var for var in required_vars if not os.getenv(var)]
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

        frontend_url = os.getenv("FRONTEND_URL", "http://localhost:5173")

        return cls(
            database_url=os.getenv("DATABASE_URL"),
            s3_endpoint=os.getenv("S3_ENDPOINT"),
            s3_bucket=os.getenv("S3_BUCKET"),
            s3_public_url=os.getenv("S3_PUBLIC_URL"),
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            google_oauth2_client_id=os.getenv("GOOGLE_OAUTH2_CLIENT_ID"),
            google_oauth2_client_secret=os.getenv("GOOGLE_OAUTH2_CLIENT_SECRET"),
            google_oauth2_redirect_uri=os.getenv("GOOGLE_OAUTH2_REDIRECT_URI"),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY"),
            session_secret=os.getenv("SESSION_SECRET"),
            inference_api_url=os.getenv("INFERENCE_API_URL", DEFAULT_INFERENCE_API_URL),
            inference_model=os.getenv("INFERENCE_MODEL", DEFAULT_INFERENCE_MODEL),
            gmail_query=os.getenv("GMAIL_QUERY", DEFAULT_GMAIL_QUERY),
            gmail_max_results=int(os.getenv("GMAIL_MAX_RESULTS", "10")),
            raster_dpi=int(os.getenv("RASTER_DPI", "150")),
            frontend_url=frontend_url,
            cors_origins=os.getenv("CORS_ORIGINS", frontend_url),
        )
