"""Narrow persistence and proxy-registry interfaces consumed by the crawler."""

from __future__ import annotations

import inspect
from itertools import count
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Protocol, Union

from src.contracts.article import ArticleRecord
from src.contracts.source import NitterInstanceDescriptor, rank_instances

MaybeAwaitable = Union[Any, Awaitable[Any]]


class ArticleStore(Protocol):
    """Persistence collaborator; ``url`` is the deduplication key."""

    def exists(self, url: str) -> MaybeAwaitable:
        ...

    def create(self, record: ArticleRecord) -> MaybeAwaitable:
        ...


class ProxyInstanceRegistry(Protocol):
    """Read-only source of social proxy instances."""

    def get_active(self) -> MaybeAwaitable:
        ...


async def resolve(value: MaybeAwaitable) -> Any:
    """Await ``value`` when a collaborator returned an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


class MemoryArticleStore:
    """In-process store used by the CLI and tests."""

    def __init__(self) -> None:
        self._records: Dict[str, ArticleRecord] = {}
        self._ids: Dict[str, int] = {}
        self._sequence = count(1)

    def exists(self, url: str) -> bool:
        return url in self._records

    def create(self, record: ArticleRecord) -> int:
        if record.url in self._ids:
            return self._ids[record.url]
        article_id = next(self._sequence)
        self._records[record.url] = record
        self._ids[record.url] = article_id
        return article_id

    def get(self, url: str) -> Optional[ArticleRecord]:
        return self._records.get(url)

    def all(self) -> List[ArticleRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)


class StaticProxyRegistry:
    """Registry backed by a fixed list of instance descriptors."""

    def __init__(self, instances: Iterable[Union[NitterInstanceDescriptor, Dict[str, Any], str]] = ()):
        self._instances = [self._coerce(item) for item in instances]

    @staticmethod
    def _coerce(item: Union[NitterInstanceDescriptor, Dict[str, Any], str]) -> NitterInstanceDescriptor:
        if isinstance(item, NitterInstanceDescriptor):
            return item
        if isinstance(item, str):
            return NitterInstanceDescriptor(url=item)
        return NitterInstanceDescriptor.model_validate(item)

    def get_active(self) -> List[NitterInstanceDescriptor]:
        return rank_instances(self._instances)
