import logging
from typing import Callable, List, Optional

from .capability import CapabilityStore
from .errors import AlreadyPublished, Expired, InvalidInput, InvalidPrice, NotFound
from .events import EventLog, Published
from .models import Paper, normalize_address
from .registry import RegistryStore

logger = logging.getLogger(__name__)


class PublicationEngine:
    """消费凭证并发布论文"""

    def __init__(self, capabilities: CapabilityStore, registry: RegistryStore,
                 events: EventLog, clock: Callable[[], int]):
        self.capabilities = capabilities
        self.registry = registry
        self.events = events
        self.clock = clock

    def _normalize_authors(self, authors: List[str]) -> List[str]:
        if not authors:
            raise InvalidInput("A paper needs at least one author")
        normalized = [normalize_address(author) for author in authors]
        if len(set(normalized)) != len(normalized):
            raise InvalidInput("Duplicate author in author list")
        return normalized

    def publish(self, caller: str, authors: List[str],
                cited_records: Optional[List[str]] = None) -> Paper:
        """所有校验通过后才消费凭证并写入论文"""
        caller = normalize_address(caller)
        capability = self.capabilities.held(caller)
        if capability is None:
            raise NotFound(f"No publish capability held by {caller}")
        if capability.price <= 0:
            raise InvalidPrice("Price must be greater than zero")
        now = self.clock()
        if capability.is_expired(now):
            raise Expired(f"Capability expired at {capability.expires_at}")
        authors = self._normalize_authors(authors)

        cited_records = list(cited_records or [])
        if len(set(cited_records)) != len(cited_records):
            raise InvalidInput("Duplicate entry in cited_records")
        for cited in cited_records:
            if not self.registry.exists(cited):
                raise NotFound(f"Cited paper {cited} not found")

        if self.registry.deduplicates:
            if not capability.content_uid:
                raise InvalidInput("content_uid is required for content-keyed registries")
            if self.registry.uid_registered(capability.content_uid):
                logger.warning("Rejected publish by %s: %s already published",
                               caller, capability.content_uid)
                raise AlreadyPublished(f"Content {capability.content_uid} is already published")

        paper = self.registry.insert({
            "authors": authors,
            "price": capability.price,
            "royalty_rate": capability.royalty_rate,
            "cited_records": cited_records,
            "content_digest": capability.content_digest,
            "content_uid": capability.content_uid,
            "publisher": caller,
            "published_at": now,
        })
        self.capabilities.consume(capability.id, caller, now)

        self.events.emit(Published(record_identity=paper.id, authors=paper.authors, price=paper.price))
        logger.info("Published paper %s by %s", paper.id, caller)
        return paper
