from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional

from app.config.permissions_config import Permission
from app.core.access_control import authorize, check_ownership
from app.core.dependencies import ModelAccess, get_current_user, require_model_permission
from app.database.session import get_db
from app.modules.records.schemas import MessageResponse, RecordListResponse, RecordResponse
from app.modules.records.service import RecordService
from app.modules.users.schemas import CurrentUser

router = APIRouter(prefix="/records", tags=["records"])


def get_record_service(db: Session = Depends(get_db)) -> RecordService:
    return RecordService(db)


@router.get("/{model_name}", response_model=RecordListResponse)
async def list_records(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    access: ModelAccess = Depends(require_model_permission(Permission.READ)),
    service: RecordService = Depends(get_record_service)
):
    """Page through records with optional substring search and single-column sort"""
    return service.list_records(
        access.definition,
        page=page,
        limit=limit,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/{model_name}/{record_id}", response_model=RecordResponse)
async def get_record(
    record_id: int,
    access: ModelAccess = Depends(require_model_permission(Permission.READ)),
    service: RecordService = Depends(get_record_service)
):
    return {"record": service.get_record(access.definition, record_id)}


@router.post("/{model_name}", response_model=RecordResponse, status_code=201)
async def create_record(
    model_name: str,
    payload: Dict[str, Any] = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    service: RecordService = Depends(get_record_service)
):
    """Insert a record; a payload missing required fields is rejected before the role check"""
    definition = service.resolve(model_name)
    service.check_required(definition, payload)
    authorize(current_user.role, Permission.CREATE, definition)
    record = service.create_record(definition, payload, current_user)
    return {"message": "Record created successfully", "record": record}


@router.put("/{model_name}/{record_id}", response_model=RecordResponse)
async def update_record(
    record_id: int,
    payload: Dict[str, Any] = Body(...),
    access: ModelAccess = Depends(require_model_permission(Permission.UPDATE)),
    service: RecordService = Depends(get_record_service),
    db: Session = Depends(get_db)
):
    check_ownership(db, access.definition, record_id, access.user, access.decision)
    record = service.update_record(access.definition, record_id, payload, access.user)
    return {"message": "Record updated successfully", "record": record}


@router.delete("/{model_name}/{record_id}", response_model=MessageResponse)
async def delete_record(
    record_id: int,
    access: ModelAccess = Depends(require_model_permission(Permission.DELETE)),
    service: RecordService = Depends(get_record_service),
    db: Session = Depends(get_db)
):
    check_ownership(db, access.definition, record_id, access.user, access.decision)
    service.delete_record(access.definition, record_id)
    return {"message": "Record deleted successfully"}
