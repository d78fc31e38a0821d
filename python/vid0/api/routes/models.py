"""Model catalog routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vid0.api.deps import get_db, get_model_catalog
from vid0.auth.middleware import Viewer, get_optional_viewer, get_viewer
from vid0.responses import success_response
from vid0.services import models as models_service
from vid0.services.models import ModelCatalog

router = APIRouter(tags=["models"])


@router.get("/api/models")
def list_models(
    viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
    db: Annotated[Session, Depends(get_db)],
    catalog: Annotated[ModelCatalog, Depends(get_model_catalog)],
) -> dict:
    """Served models with access flags for the caller.

    Anonymous callers see every model, but only the anonymous-allowed ones
    are marked accessible.
    """
    models = models_service.list_models(catalog, db, viewer.user_id if viewer else None)
    return success_response({"models": [m.model_dump(mode="json") for m in models]})


@router.post("/api/models")
def refresh_models(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    catalog: Annotated[ModelCatalog, Depends(get_model_catalog)],
) -> dict:
    """Rebuild the model cache."""
    result = models_service.refresh_models(catalog)
    return success_response(result.model_dump(mode="json"))
