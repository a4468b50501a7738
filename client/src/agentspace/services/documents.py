"""Document cache - project documents shared by every agent of a project."""

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from agentspace.api import ApiClient
from agentspace.config import Settings, settings
from agentspace.errors import (
    ApiError,
    FileTooLargeError,
    KnowledgeBaseFileError,
    NoActiveProjectError,
    NotFoundError,
)
from agentspace.services.agents import AgentRegistry
from agentspace.services.projects import ProjectRegistry
from agentspace_models import Document

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class DocumentKey:
    """Cache key for a project's document list."""

    project_id: str
    scope: str = "all"

    def __str__(self) -> str:
        return f"{self.project_id}:{self.scope}"


class DocumentCache:
    """Owns project document lists, keyed by project rather than by agent.

    Loads are deduplicated per key: concurrent callers share one fetch, and a
    fetch superseded by :meth:`invalidate` never writes its result.
    """

    def __init__(
        self,
        api: ApiClient,
        agents: AgentRegistry,
        projects: ProjectRegistry,
        config: Settings | None = None,
    ):
        self._api = api
        self._agents = agents
        self._projects = projects
        self._settings = config or settings
        self._documents: dict[DocumentKey, list[Document]] = {}
        self._loaded: set[DocumentKey] = set()
        self._inflight: dict[DocumentKey, asyncio.Task] = {}
        self.is_loading = False
        self.is_generating_summary = False

    # ============= State =============

    def _active_key(self) -> DocumentKey | None:
        project_id = self._projects.active_project_id
        return DocumentKey(project_id) if project_id else None

    def _require_project(self, message: str | None = None) -> str:
        project_id = self._projects.active_project_id
        if not project_id:
            raise NoActiveProjectError(message) if message else NoActiveProjectError()
        return project_id

    @property
    def documents(self) -> list[Document]:
        """Documents of the active project."""
        key = self._active_key()
        if key is None:
            return []
        return list(self._documents.get(key, []))

    def is_loaded(self, key: DocumentKey) -> bool:
        return key in self._loaded

    def invalidate(self, key: DocumentKey) -> None:
        """Force the next ``ensure_summary_loaded`` for ``key`` to re-fetch."""
        self._loaded.discard(key)
        self._inflight.pop(key, None)

    def reset(self) -> None:
        """Forget every project's documents."""
        self._documents.clear()
        self._loaded.clear()
        self._inflight.clear()

    # ============= Loading =============

    async def ensure_summary_loaded(self) -> None:
        """Fetch the active project's documents unless already cached.

        A 404 means the project has no documents yet and is cached as empty.

        Raises:
            ApiError: Any other failure; the key stays unloaded

        """
        agent_id = self._agents.active_agent_id
        key = self._active_key()
        if not agent_id or key is None:
            return
        if key in self._loaded:
            return

        task = self._inflight.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(self._fetch(key, agent_id))
            self._inflight[key] = task
        try:
            # A cancelled caller must not cancel the fetch other callers share
            await asyncio.shield(task)
        finally:
            if task.done() and self._inflight.get(key) is task:
                del self._inflight[key]

    async def _fetch(self, key: DocumentKey, agent_id: str) -> None:
        this_fetch = asyncio.current_task()
        try:
            documents = await self._api.get_summary_files(agent_id, key.project_id)
        except NotFoundError:
            logger.debug(f"No documents for {key}")
            documents = []
        except Exception as e:
            logger.error(f"Failed to load documents for {key}: {e}")
            raise

        if self._inflight.get(key) is not this_fetch:
            logger.debug(f"Discarding superseded document fetch for {key}")
            return
        self._documents[key] = documents
        self._loaded.add(key)
        logger.info(f"Loaded {len(documents)} documents for {key}")

    async def _refresh(self, project_id: str) -> None:
        self.invalidate(DocumentKey(project_id))
        await self.ensure_summary_loaded()

    # ============= Summaries and prototypes =============

    async def generate_summary(self) -> Document | None:
        """Ask the active agent to summarize its conversation into a new document.

        The document is shown first immediately; the key is invalidated so the
        next load picks up any server-side changes to other documents.
        """
        agent_id = self._agents.active_agent_id
        project_id = self._projects.active_project_id
        if not agent_id or not project_id:
            return None

        self.is_generating_summary = True
        try:
            document = await self._api.generate_summary(agent_id, project_id)
        except Exception as e:
            logger.error(f"Summary generation failed for agent {agent_id}: {e}")
            raise
        finally:
            self.is_generating_summary = False

        key = DocumentKey(project_id)
        self._documents[key] = [document, *self._documents.get(key, [])]
        self.invalidate(key)
        logger.info(f"Generated summary {document.id} for agent {agent_id}")
        return document

    async def generate_prototype(self, file_id: str) -> Document | None:
        """Generate a prototype for a document and replace it in the cache."""
        agent_id = self._agents.active_agent_id
        project_id = self._require_project()
        if not agent_id:
            return None

        document = await self._api.generate_prototype(agent_id, file_id)
        key = DocumentKey(project_id)
        self._documents[key] = [
            document if d.id == document.id else d for d in self._documents.get(key, [])
        ]
        self.invalidate(key)
        return document

    # ============= Uploads and removal =============

    def _read_upload(self, path: Path | str) -> tuple[str, str, bytes]:
        path = Path(path)
        content = path.read_bytes()
        if len(content) > self._settings.max_upload_bytes:
            raise FileTooLargeError(
                f"{path.name} is larger than the {self._settings.max_upload_bytes} byte upload limit"
            )
        mime_type = mimetypes.guess_type(path.name)[0] or DEFAULT_MIME_TYPE
        return path.name, mime_type, content

    async def upload_file(self, path: Path | str) -> Document:
        """Upload one file to the active project, then reload the list."""
        project_id = self._require_project("Select a project before uploading files")
        name, mime_type, content = self._read_upload(path)
        document = await self._api.upload_project_file(project_id, name, mime_type, content)
        await self._refresh(project_id)
        return document

    async def upload_files(self, paths: list[Path | str]) -> list[Document]:
        """Upload several files concurrently, then reload the list once."""
        project_id = self._require_project("Select a project before uploading files")
        if not paths:
            return []

        # Validate every file before sending any of them
        uploads = [self._read_upload(p) for p in paths]

        self.is_loading = True
        try:
            documents = await asyncio.gather(
                *(self._api.upload_project_file(project_id, *upload) for upload in uploads)
            )
            await self._refresh(project_id)
        finally:
            self.is_loading = False
        return list(documents)

    async def remove_file(self, file_id: str) -> None:
        """Delete a document of the active project.

        Raises:
            KnowledgeBaseFileError: The document is administrator-managed
            NoActiveProjectError: No project is selected

        """
        project_id = self._require_project()
        key = DocumentKey(project_id)
        document = next((d for d in self._documents.get(key, []) if d.id == file_id), None)
        if document is None:
            logger.warning(f"File {file_id} is not among the documents of {key}")
            return
        if document.is_knowledge_base:
            raise KnowledgeBaseFileError()

        try:
            await self._api.delete_project_file(project_id, file_id)
        except ApiError as e:
            if e.status not in (403, 404):
                logger.error(f"Failed to remove file {file_id}: {e}")
                raise
            logger.warning(
                f"Project-scoped delete of {file_id} answered {e.status}, falling back to direct delete"
            )
            await self._api.delete_file(file_id)

        await self._refresh(project_id)
