from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class TicketStatus(str, Enum):
    TO_DO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class TicketPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    HIGHEST = "Highest"


class TicketCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    status: TicketStatus = TicketStatus.TO_DO
    priority: TicketPriority = TicketPriority.MEDIUM
    assignee: Optional[str] = None
    project_id: str


class TicketUpdate(BaseModel):
    """Partial update; fields left out of the request body stay unchanged."""

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    assignee: Optional[str] = None
