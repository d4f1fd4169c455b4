from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from sekisan.models.project import Project


class ProjectDTO(BaseModel):
    id: str
    name: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_orm_model(cls, project: Project) -> "ProjectDTO":
        return cls(
            id=project.id,
            name=project.name,
            created_at=project.created_at,
        )
