from pydantic import BaseModel
from typing import Any, Dict, List


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class RecordListResponse(BaseModel):
    records: List[Dict[str, Any]]
    pagination: Pagination


class RecordResponse(BaseModel):
    message: str = ""
    record: Dict[str, Any]


class MessageResponse(BaseModel):
    message: str
