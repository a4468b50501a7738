"""Resource coordinator - bootstraps the session after a token becomes available.

Order: current user, then projects and project types together, then the agents
of the active project. Chat and document caches are reset at the end because
a fresh project context invalidates them.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from agentspace.config import settings
from agentspace.errors import AuthError, RateLimitError, ServerError
from agentspace.messages import RATE_LIMIT_NOTICE, user_facing_message
from agentspace.services.agents import AgentRegistry
from agentspace.services.conversation import ConversationEngine
from agentspace.services.documents import DocumentCache
from agentspace.services.projects import ProjectRegistry
from agentspace.services.session import SessionStore

logger = logging.getLogger(__name__)

# Messages that mean the backend cannot reach its database
BACKING_STORE_MARKERS = ("Database", "Can't reach database")


class BootstrapPhase(str, Enum):
    """Lifecycle of the coordinator."""

    IDLE = "idle"
    BOOTSTRAPPING = "bootstrapping"


class FailureKind(str, Enum):
    """How a bootstrap failure is handled."""

    AUTH = "auth"  # Fatal: session is dropped
    RATE_LIMIT = "rate_limit"  # User is told to slow down
    TRANSIENT = "transient"  # Server or database trouble
    OTHER = "other"  # Handled like TRANSIENT


@dataclass(frozen=True)
class BootstrapSnapshot:
    """Immutable view of the coordinator published to observers."""

    phase: BootstrapPhase = BootstrapPhase.IDLE
    has_bootstrapped: bool = False

    @property
    def is_bootstrapping(self) -> bool:
        return self.phase is BootstrapPhase.BOOTSTRAPPING


@dataclass(frozen=True)
class BootstrapNotice:
    """Passed to the error callback when a bootstrap fails."""

    kind: FailureKind
    message: str
    error: BaseException


def classify_failure(error: BaseException) -> FailureKind:
    """Classify a bootstrap failure; checks run in priority order."""
    status = getattr(error, "status", None)
    if isinstance(error, AuthError) or status in (401, 403):
        return FailureKind.AUTH
    if isinstance(error, RateLimitError) or status == 429:
        return FailureKind.RATE_LIMIT
    message = getattr(error, "message", None) or str(error)
    if (
        isinstance(error, ServerError)
        or status in (500, 503)
        or any(marker in message for marker in BACKING_STORE_MARKERS)
    ):
        return FailureKind.TRANSIENT
    return FailureKind.OTHER


class ResourceCoordinator:
    """Sequences the loading of user, projects and agents.

    Overlapping ``bootstrap`` calls are dropped, and a token that was already
    bootstrapped successfully is not bootstrapped again until :meth:`reset`.
    """

    def __init__(
        self,
        session: SessionStore,
        projects: ProjectRegistry,
        agents: AgentRegistry,
        conversation: ConversationEngine,
        documents: DocumentCache,
        on_error: Callable[[BootstrapNotice], None] | None = None,
        token_retry_delay: float | None = None,
    ):
        self._session = session
        self._projects = projects
        self._agents = agents
        self._conversation = conversation
        self._documents = documents
        self._on_error = on_error
        self._token_retry_delay = (
            settings.token_retry_delay if token_retry_delay is None else token_retry_delay
        )
        self._snapshot = BootstrapSnapshot()
        self._last_token: str | None = None
        self._observers: list[Callable[[BootstrapSnapshot], None]] = []

    # ============= Observation =============

    @property
    def snapshot(self) -> BootstrapSnapshot:
        return self._snapshot

    @property
    def is_bootstrapping(self) -> bool:
        return self._snapshot.is_bootstrapping

    @property
    def has_bootstrapped(self) -> bool:
        return self._snapshot.has_bootstrapped

    def subscribe(self, observer: Callable[[BootstrapSnapshot], None]) -> Callable[[], None]:
        """Register an observer; returns a callable that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _publish(self, **changes) -> None:
        self._snapshot = BootstrapSnapshot(
            phase=changes.get("phase", self._snapshot.phase),
            has_bootstrapped=changes.get("has_bootstrapped", self._snapshot.has_bootstrapped),
        )
        for observer in list(self._observers):
            observer(self._snapshot)

    def _notify_error(self, notice: BootstrapNotice) -> None:
        if self._on_error is not None:
            self._on_error(notice)

    # ============= Bootstrap =============

    def reset(self) -> None:
        """Forget the bootstrapped token so the next call runs again."""
        self._last_token = None
        self._publish(phase=BootstrapPhase.IDLE, has_bootstrapped=False)

    async def _read_token(self) -> str | None:
        token = self._session.token
        if not token:
            # A just-completed login may not have reached storage yet
            await asyncio.sleep(self._token_retry_delay)
            token = self._session.token
        return token

    def _clear_session(self) -> None:
        self._session.logout()
        self._projects.clear()
        self._agents.clear()
        self._last_token = None

    def _clear_dependents(self) -> None:
        self._projects.set_projects([])
        self._agents.clear()
        self._conversation.clear_all_chat_histories()
        self._conversation.clear_loaded_agents()
        self._documents.reset()

    async def bootstrap(self) -> None:
        """Load everything the workspace needs for the current token.

        Never raises: failures are classified, handled, and reported through
        the error callback.
        """
        token = await self._read_token()
        if not token:
            logger.info("No token, clearing session")
            self._clear_session()
            self._publish(has_bootstrapped=False)
            return

        if self._snapshot.is_bootstrapping:
            logger.debug("Bootstrap already in progress, skipping")
            return
        if self._last_token == token and self._snapshot.has_bootstrapped:
            logger.debug("Already bootstrapped with this token, skipping")
            return

        self._last_token = token
        self._publish(phase=BootstrapPhase.BOOTSTRAPPING, has_bootstrapped=False)
        logger.info("Bootstrap started")

        try:
            await self._session.load_user()

            selected_project_id, _ = await asyncio.gather(
                self._projects.load_projects(),
                self._projects.load_project_types(),
            )

            if selected_project_id and selected_project_id.strip():
                try:
                    await self._agents.load_agents(selected_project_id)
                except Exception as e:
                    logger.error(f"Failed to load agents during bootstrap: {e}")
                    self._agents.clear()
            else:
                self._agents.clear()

            self._conversation.clear_all_chat_histories()
            self._conversation.clear_loaded_agents()
            self._documents.reset()
            self._publish(has_bootstrapped=True)
            logger.info("Bootstrap finished")
        except Exception as e:
            self._handle_failure(e)
        finally:
            self._publish(phase=BootstrapPhase.IDLE)

    def _handle_failure(self, error: Exception) -> None:
        kind = classify_failure(error)
        logger.error(f"Bootstrap failed ({kind.value}): {error}")

        if kind is FailureKind.AUTH:
            self._clear_session()
            self._publish(has_bootstrapped=False)
            self._notify_error(BootstrapNotice(kind, user_facing_message(error), error))
            return

        # Keep whatever an earlier bootstrap loaded; only blank out a UI that never loaded
        if self._session.user is None and not self._projects.projects:
            self._clear_dependents()

        if kind is FailureKind.RATE_LIMIT:
            message = user_facing_message(error, RATE_LIMIT_NOTICE)
        else:
            message = user_facing_message(error)
        self._notify_error(BootstrapNotice(kind, message, error))
