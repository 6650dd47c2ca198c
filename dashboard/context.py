"""
DataContext — the dashboard's explicit store object.

Owns one view per entity kind, the repos behind them and whatever
connection those repos share (HTTP client or database pool). Build one per
consuming context, open it, and close it when done:

    async with await DataContext.from_settings(settings) as ctx:
        for project in ctx.projects.items:
            ...
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from datasync.kernel.facade import EntityView
from datasync.kernel.types import Entity, EntityKind, NotificationSink, RemoteStore
from dashboard.config import Settings
from dashboard.config import settings as default_settings
from dashboard.kinds import ADDITIONAL_TASKS, CUSTOMERS, DEVIATION_COMMENTS, DEVIATIONS, PROJECTS
from dashboard.models import Deviation
from dashboard.notifications import LoggingSink
from dashboard.repos import MemoryRepo, PostgresRepo, RestRepo, create_client, create_pool
from dashboard.views import AdditionalTasksView, CustomersView, DeviationsView, ProjectsView

logger = logging.getLogger(__name__)

RepoFactory = Callable[[EntityKind], RemoteStore]


def memory_repos() -> RepoFactory:
    """Repo factory for the memory backend. Deviations embed the comments repo's rows."""
    comments = MemoryRepo(DEVIATION_COMMENTS)

    def factory(kind: EntityKind) -> RemoteStore:
        if kind.name == DEVIATION_COMMENTS.name:
            return comments
        if kind.name == DEVIATIONS.name:
            return MemoryRepo(kind, children={"comments": (comments, "deviation_id")})
        return MemoryRepo(kind)

    return factory


class DataContext:
    """All views of one dashboard session."""

    def __init__(
        self,
        repo_factory: RepoFactory,
        sink: NotificationSink | None = None,
        *,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self.sink = sink if sink is not None else LoggingSink()
        self.projects = ProjectsView(repo_factory(PROJECTS), self.sink)
        self.deviations = DeviationsView(repo_factory(DEVIATIONS), repo_factory(DEVIATION_COMMENTS), self.sink)
        self.additional_tasks = AdditionalTasksView(repo_factory(ADDITIONAL_TASKS), self.sink)
        self.customers = CustomersView(repo_factory(CUSTOMERS), self.sink)
        self._views: dict[str, EntityView] = {
            view.kind.name: view for view in (self.projects, self.deviations, self.additional_tasks, self.customers)
        }
        self._on_close = on_close
        self._closed = False

    @classmethod
    async def from_settings(cls, settings: Settings | None = None, sink: NotificationSink | None = None) -> DataContext:
        """Build a context on the configured backend. Raises RuntimeError if configuration is incomplete."""
        settings = settings or default_settings
        settings.validate()
        logger.info("Using %s backend", settings.BACKEND)

        if settings.BACKEND == "rest":
            client = create_client(settings)
            return cls(lambda kind: RestRepo(kind, client), sink, on_close=client.aclose)
        if settings.BACKEND == "postgres":
            pool = await create_pool(settings)
            return cls(lambda kind: PostgresRepo(kind, pool), sink, on_close=pool.close)
        return cls(memory_repos(), sink)

    @property
    def views(self) -> dict[str, EntityView]:
        return dict(self._views)

    def view(self, name: str) -> EntityView:
        try:
            return self._views[name]
        except KeyError:
            raise KeyError(f"Unknown entity kind '{name}'. Known: {', '.join(self._views)}") from None

    async def open(self) -> DataContext:
        """Load every collection concurrently. Failed loads leave their view in the error state."""
        await asyncio.gather(*(view.refresh() for view in self._views.values()))
        return self

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await asyncio.gather(*(view.close() for view in self._views.values()))
        if self._on_close is not None:
            await self._on_close()
        logger.debug("Data context closed")

    async def __aenter__(self) -> DataContext:
        return await self.open()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def convert_deviation_to_task(self, deviation_id: str) -> Entity | None:
        """Create an additional task from a loaded deviation. Returns the new task, or None."""
        deviation = self.deviations.get(deviation_id)
        if not isinstance(deviation, Deviation):
            logger.warning("Cannot convert deviation %s: not loaded", deviation_id)
            return None
        return await self.additional_tasks.convert_deviation(deviation)
