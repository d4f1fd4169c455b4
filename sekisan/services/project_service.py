from uuid import uuid4

from sqlalchemy.orm import Session

from sekisan.exceptions import FieldValidationError, NotFoundError
from sekisan.logger import get_logger
from sekisan.models.project import Project
from sekisan.services.audit_log_service import AuditLogService

logger = get_logger(__name__)


class ProjectService:
    """
    Minimal project ownership: quantity tables and statements hang off a project.
    """

    def __init__(
        self,
        db: Session,
        audit_log_service: AuditLogService,
    ):
        self.db = db
        self.audit_log_service = audit_log_service

    def create_project(
        self,
        *,
        name: str,
        operator_id: str,
    ) -> Project:
        '''
        Create a project.

        :param name: project name (required)
        :param operator_id: operator performing the action
        :return: the new Project (flushed, not committed)
        '''
        if not name or not name.strip():
            raise FieldValidationError([{"field": "name", "message": "Project name is required", "value": name}])

        project = Project(id=str(uuid4()), name=name.strip())
        self.db.add(project)
        self.db.flush()

        self.audit_log_service.record_create(
            project_id=project.id,
            entity_type="project",
            entity_id=project.id,
            operator_id=operator_id,
        )
        logger.info(f"[Project] created id={project.id}")
        return project

    def get_project(self, project_id: str) -> Project:
        project = self.db.get(Project, project_id)
        if not project:
            raise NotFoundError("Project", project_id)
        return project
