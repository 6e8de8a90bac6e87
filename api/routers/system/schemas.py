from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class OpsNotification(BaseModel):
    type: str = "notification"
    message: str = Field(..., min_length=1)
    data: Optional[dict[str, Any]] = None
    priority: Optional[Literal["low", "medium", "high", "critical"]] = None
