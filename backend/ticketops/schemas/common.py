from pydantic import BaseModel
from typing import Generic, List, TypeVar

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Paginated list envelope"""
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool = False
    has_previous: bool = False


class MessageResponse(BaseModel):
    message: str


class CountResponse(BaseModel):
    count: int
