"""FastAPI dependencies: configuration, database, session user and pipeline."""

from fastapi import Depends, HTTPException, Request

from ..config import Config
from ..ingestion.gmail import GmailSource, build_credentials
from ..models import UserInfo
from ..pipeline import InvoicePipeline
from ..processing.rasterizer import PageRasterizer
from ..semantic.extractor import InvoiceExtractor
from ..semantic.inference import InferenceClient
from ..storage.attachments import S3Client
from ..storage.database import DatabaseClient


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_db(config: Config = Depends(get_config)):
    db = DatabaseClient(config.database_url)
    try:
        yield db
    finally:
        db.close()


def get_current_user(request: Request) -> UserInfo:
    """User stored in the session by /api/exchange-token."""
    user = request.session.get("user")
    if not user or not user.get("id"):
        raise HTTPException(status_code=401, detail="Authentication required. Please log in via Google.")
    return UserInfo(**user)


def get_pipeline(
    request: Request,
    config: Config = Depends(get_config),
    db: DatabaseClient = Depends(get_db),
    user: UserInfo = Depends(get_current_user),
) -> InvoicePipeline:
    """Pipeline wired to the session user's Gmail account."""
    session_id = request.session.get("session_id")
    tokens = db.get_google_tokens(session_id) if session_id else None
    if not tokens:
        raise HTTPException(status_code=401, detail="Authentication required. No Google tokens for this session.")

    credentials = build_credentials(
        tokens,
        client_id=config.google_oauth2_client_id,
        client_secret=config.google_oauth2_client_secret,
    )
    inference = InferenceClient(
        api_key=config.openrouter_api_key,
        api_url=config.inference_api_url,
        model_name=config.inference_model,
    )
    storage = S3Client(
        endpoint_url=config.s3_endpoint,
        bucket_name=config.s3_bucket,
        access_key_id=config.aws_access_key_id,
        secret_access_key=config.aws_secret_access_key,
        public_base_url=config.s3_public_url,
    )

    return InvoicePipeline(
        source=GmailSource(credentials=credentials),
        extractor=InvoiceExtractor(inference, PageRasterizer(dpi=config.raster_dpi)),
        storage=storage,
        db=db,
        query=config.gmail_query,
        max_results=config.gmail_max_results,
    )
