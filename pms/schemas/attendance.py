import uuid
from typing import List, Optional

from pydantic import BaseModel, Field


class StartShiftRequest(BaseModel):
    workspace_id: Optional[uuid.UUID] = None
    project_id: Optional[uuid.UUID] = None


class EndShiftRequest(BaseModel):
    attendance_id: uuid.UUID
    end_activity: str = Field(min_length=1, description="Please describe your end activity")
    daily_tasks: List[str] = Field(min_length=1, description="Please add at least one task")


class UpdateTasksRequest(BaseModel):
    daily_tasks: List[str] = Field(min_length=1)
