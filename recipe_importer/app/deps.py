# recipe_importer/app/deps.py
from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from supabase import Client, create_client

from recipe_importer.app.config import get_settings
from recipe_importer.app.infra.db.supabase_jobs_repo import SupabaseImportJobRepository
from recipe_importer.app.infra.db.supabase_recipes_repo import SupabaseRecipeRepository
from recipe_importer.app.services import import_queue
from recipe_importer.app.services.import_pipeline import ImportPipeline
from recipe_importer.app.services.import_service import ImportService
from recipe_importer.app.services.materializer import RecipeMaterializer
from recipe_importer.services.extraction import RecipeExtractor
from recipe_importer.services.fetcher import PlatformFetcher
from recipe_importer.services.gemini_client import GeminiClient
from recipe_importer.services.transcript import TranscriptRetriever

logger = logging.getLogger(__name__)

_client: Client | None = None


def get_supabase() -> Client:
    global _client
    if _client is None:
        settings = get_settings()
        _client = create_client(str(settings.SUPABASE_URL), settings.SUPABASE_SERVICE_ROLE_KEY)
    return _client


auth_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: str
    email: str | None = None
    name: str | None = None


async def get_current_user(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    supa: Client = Depends(get_supabase),
) -> CurrentUser:
    """
    Validates the Supabase access token from `Authorization: Bearer <token>`
    against GoTrue and returns the minimal user profile.
    """
    if cred is None or cred.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")

    try:
        res = supa.auth.get_user(cred.credentials)
    except Exception as error:
        logger.info("Token validation failed: %s", error)
        raise HTTPException(status_code=401, detail="Invalid/expired token") from error

    user = res.user if res else None
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token")

    meta = getattr(user, "user_metadata", None) or {}
    name = meta.get("name") if isinstance(meta, dict) else None
    return CurrentUser(id=str(user.id), email=user.email, name=name)


def build_import_pipeline() -> ImportPipeline:
    settings = get_settings()
    supa = get_supabase()
    model = GeminiClient(
        api_key=settings.GEMINI_API_KEY,
        model_name=settings.GEMINI_MODEL,
        timeout_seconds=settings.MODEL_TIMEOUT_SECONDS,
    )
    return ImportPipeline(
        jobs=SupabaseImportJobRepository(supa),
        fetcher=PlatformFetcher(settings),
        transcripts=TranscriptRetriever(settings),
        extractor=RecipeExtractor(model, settings),
        materializer=RecipeMaterializer(SupabaseRecipeRepository(supa)),
        settings=settings,
    )


def get_import_service(supa: Client = Depends(get_supabase)) -> ImportService:
    return ImportService(SupabaseImportJobRepository(supa), import_queue.enqueue)
