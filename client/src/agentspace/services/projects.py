"""Project registry - projects, project types and the active project."""

import logging

from agentspace.api import ApiClient
from agentspace.storage import LAST_PROJECT_KEY, KeyValueStore
from agentspace_models import Project, ProjectType

logger = logging.getLogger(__name__)


class ProjectRegistry:
    """Owns the user's projects and the persisted active selection."""

    def __init__(self, api: ApiClient, store: KeyValueStore):
        self._api = api
        self._store = store
        self.projects: list[Project] = []
        self.project_types: list[ProjectType] = []
        self.active_project_id: str | None = store.get(LAST_PROJECT_KEY)
        self.is_loading = False

    @property
    def active_project(self) -> Project | None:
        if not self.active_project_id:
            return None
        return self.get_project(self.active_project_id)

    def get_project(self, project_id: str) -> Project | None:
        return next((p for p in self.projects if p.id == project_id), None)

    def select_project(self, project_id: str | None) -> None:
        """Set the active project and persist the choice."""
        self.active_project_id = project_id
        if project_id:
            self._store.set(LAST_PROJECT_KEY, project_id)
        else:
            self._store.remove(LAST_PROJECT_KEY)

    def set_projects(self, projects: list[Project]) -> None:
        self.projects = list(projects)

    def clear(self) -> None:
        self.projects = []
        self.select_project(None)

    async def load_projects(self) -> str | None:
        """Fetch projects and revalidate the active selection.

        Returns:
            The active project ID after revalidation: the last used project if
            it still exists, else the first project, else None

        """
        self.is_loading = True
        try:
            projects = await self._api.get_projects()
        except Exception as e:
            logger.error(f"Failed to load projects: {e}")
            raise
        finally:
            self.is_loading = False

        self.projects = projects
        last_used = self._store.get(LAST_PROJECT_KEY)
        if last_used and self.get_project(last_used):
            selected = last_used
        else:
            selected = projects[0].id if projects else None
        self.select_project(selected)
        return selected

    async def load_project_types(self) -> None:
        """Fetch project types; failures leave an empty list."""
        try:
            self.project_types = await self._api.get_project_types()
        except Exception as e:
            logger.error(f"Failed to load project types: {e}")
            self.project_types = []

    async def create_project(
        self, name: str, project_type_id: str, description: str | None = None
    ) -> Project:
        """Create a project and make it active."""
        self.is_loading = True
        try:
            project = await self._api.create_project(name, project_type_id, description)
        except Exception as e:
            logger.error(f"Failed to create project: {e}")
            raise
        finally:
            self.is_loading = False

        self.projects = [*self.projects, project]
        self.select_project(project.id)
        logger.info(f"Created project {project.id}")
        return project

    async def update_project(
        self, project_id: str, name: str | None = None, description: str | None = None
    ) -> Project:
        self.is_loading = True
        try:
            project = await self._api.update_project(project_id, name, description)
        except Exception as e:
            logger.error(f"Failed to update project {project_id}: {e}")
            raise
        finally:
            self.is_loading = False

        self.projects = [project if p.id == project.id else p for p in self.projects]
        return project

    async def delete_project(self, project_id: str) -> None:
        """Delete a project; if it was active, select the first remaining one."""
        self.is_loading = True
        try:
            await self._api.delete_project(project_id)
        except Exception as e:
            logger.error(f"Failed to delete project {project_id}: {e}")
            raise
        finally:
            self.is_loading = False

        self.projects = [p for p in self.projects if p.id != project_id]
        if self.active_project_id == project_id:
            self.select_project(self.projects[0].id if self.projects else None)
