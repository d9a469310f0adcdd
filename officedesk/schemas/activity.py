from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel


class ActivityRead(BaseModel):
    id: str
    type: str
    action: str
    target: str
    details: Optional[Dict[str, Any]] = None
    user_id: str
    user_name: Optional[str] = None
    created_at: datetime
