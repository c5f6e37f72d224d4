from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

PathKey = Union[str, int]


@dataclass(frozen=True)
class ExecutionError:
    """One entry of ``QueryResult.errors``."""

    path: Tuple[PathKey, ...]
    message: str
    kind: str

    def to_dict(self) -> Dict[str, Any]:
        return {'message': self.message, 'path': list(self.path), 'kind': self.kind}


@dataclass
class QueryResult:
    """Outcome of one execution: nested data (possibly with nulls) plus errors."""

    data: Optional[Dict[str, Any]]
    errors: List[ExecutionError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def errors_at(self, *path: PathKey) -> List[ExecutionError]:
        return [e for e in self.errors if e.path == tuple(path)]

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {'data': self.data}
        if self.errors:
            out['errors'] = [e.to_dict() for e in self.errors]
        return out


__all__ = ['ExecutionError', 'QueryResult', 'PathKey']
