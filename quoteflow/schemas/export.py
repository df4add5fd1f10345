from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ExportTable(BaseModel):
    """Tabular report shape shared by every export type."""

    headers: List[str]
    rows: List[List[Any]] = Field(default_factory=list)
    title: Optional[str] = None
    timestamp: str
