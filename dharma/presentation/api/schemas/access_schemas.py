from typing import Optional

from pydantic import BaseModel


class RouteDecisionResponse(BaseModel):
    path: str
    category: str
    action: str
    target: Optional[str]
    reason: str
