import logging
from core.exceptions import ProjectNotFound
from .models import Project

logger = logging.getLogger(__name__)


class ProjectRegistry:
    """The slice of project storage the marketplace reads and writes."""

    def get(self, project_id):
        try:
            return Project.objects.select_related('owner', 'contractor').get(pk=project_id)
        except (Project.DoesNotExist, ValueError):
            raise ProjectNotFound()

    def assign_contractor(self, project_id, contractor_id):
        updated = Project.objects.filter(pk=project_id).update(contractor_id=contractor_id)
        if updated:
            logger.info(f"Contractor {contractor_id} assigned to project {project_id}")
        else:
            logger.warning(f"Project {project_id} vanished before contractor {contractor_id} could be assigned")
        return bool(updated)
