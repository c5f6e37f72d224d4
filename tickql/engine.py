"""Engine facade: one fresh resolution context per execution."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

from .config import EngineSettings
from .context import ResolutionContext
from .document import plan_from_source
from .loader import FetchMany
from .plan import QueryPlan
from .registry import Schema
from .result import QueryResult

logger = logging.getLogger(__name__)


class Engine:
    """Executes plans or query text against a schema and a backing store.

    Example::

        engine = Engine(schema, MemoryStore(tables), settings=EngineSettings.from_env())
        result = await engine.execute('{ repo(id: 1) { name reviews { body } } }')
    """

    def __init__(self, schema: Schema, store: Any = None, *, settings: Optional[EngineSettings] = None,
                 fetchers: Optional[Mapping[str, FetchMany]] = None, validate_documents: bool = False):
        self.schema = schema.freeze()
        self.store = store
        self.settings = settings or EngineSettings()
        self.fetchers = dict(fetchers or {})
        self.validate_documents = validate_documents
        self.settings.apply_logging()

    def context(self, values: Optional[Mapping[str, Any]] = None) -> ResolutionContext:
        return ResolutionContext(self.schema, self.store, values=values, settings=self.settings,
                                 fetchers=self.fetchers)

    def plan(self, source: str, variables: Optional[Mapping[str, Any]] = None, *,
             operation_name: Optional[str] = None, root_value: Any = None) -> QueryPlan:
        return plan_from_source(source, variables, operation_name=operation_name, root_value=root_value,
                                schema=self.schema if self.validate_documents else None)

    async def execute(self, query: Union[QueryPlan, str], variables: Optional[Mapping[str, Any]] = None, *,
                      operation_name: Optional[str] = None, values: Optional[Mapping[str, Any]] = None,
                      root_value: Any = None) -> QueryResult:
        if isinstance(query, str):
            plan = self.plan(query, variables, operation_name=operation_name, root_value=root_value)
        else:
            plan = query
        result = await self.context(values).run(plan)
        if result.errors:
            logger.debug("tickql.engine: %s finished with %d error(s)", plan.name or plan.operation, len(result.errors))
        return result


__all__ = ['Engine']
