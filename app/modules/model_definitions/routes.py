from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from app.config.permissions_config import PUBLISH_ROLES
from app.core.dependencies import get_current_user, require_role
from app.database.session import get_db
from app.modules.model_definitions.artifact_store import ArtifactStore, get_artifact_store
from app.modules.model_definitions.schemas import (
    ModelDefinitionCreate, ModelDefinitionUpdate, ModelDefinitionResponse,
    ModelDefinitionEnvelope, ModelDefinitionList, PublishResponse,
)
from app.modules.model_definitions.service import ModelDefinitionService
from app.modules.users.schemas import CurrentUser

router = APIRouter(prefix="/models", tags=["models"])


def get_model_definition_service(
    db: Session = Depends(get_db),
    artifact_store: ArtifactStore = Depends(get_artifact_store),
) -> ModelDefinitionService:
    return ModelDefinitionService(db, artifact_store)


@router.get("", response_model=ModelDefinitionList)
async def list_models(
    limit: int = 100,
    offset: int = 0,
    published: Optional[bool] = None,
    current_user: CurrentUser = Depends(get_current_user),
    service: ModelDefinitionService = Depends(get_model_definition_service)
):
    """List model definitions, newest first"""
    definitions = service.list_definitions(limit=limit, offset=offset, published=published)
    return {"models": [ModelDefinitionResponse.model_validate(d) for d in definitions]}


@router.get("/{model_id}", response_model=ModelDefinitionEnvelope)
async def get_model(
    model_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: ModelDefinitionService = Depends(get_model_definition_service)
):
    return {"model": ModelDefinitionResponse.model_validate(service.get_definition(model_id))}


@router.post("", response_model=ModelDefinitionEnvelope, status_code=201)
async def create_model(
    body: ModelDefinitionCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: ModelDefinitionService = Depends(get_model_definition_service)
):
    """Create a draft model definition owned by the current user"""
    definition = service.create_definition(body, current_user)
    return {
        "message": "Model definition created successfully",
        "model": ModelDefinitionResponse.model_validate(definition),
    }


@router.put("/{model_id}", response_model=ModelDefinitionEnvelope)
async def update_model(
    model_id: int,
    body: ModelDefinitionUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: ModelDefinitionService = Depends(get_model_definition_service)
):
    """Update a draft (creator or Admin only; published models are frozen)"""
    definition = service.update_definition(model_id, body, current_user)
    return {
        "message": "Model updated successfully",
        "model": ModelDefinitionResponse.model_validate(definition),
    }


@router.post("/{model_id}/publish", response_model=PublishResponse)
async def publish_model(
    model_id: int,
    current_user: CurrentUser = Depends(require_role(*PUBLISH_ROLES)),
    service: ModelDefinitionService = Depends(get_model_definition_service)
):
    """Freeze the schema and create the backing table"""
    result = service.publish_definition(model_id)
    return {
        "message": "Model published successfully",
        "model": ModelDefinitionResponse.model_validate(result.definition),
        "artifact": result.artifact,
    }


@router.delete("/{model_id}")
async def delete_model(
    model_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: ModelDefinitionService = Depends(get_model_definition_service)
):
    """Delete a definition; a published one also loses its table"""
    service.delete_definition(model_id, current_user)
    return {"message": "Model deleted successfully"}
