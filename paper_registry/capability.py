import logging
import threading
from typing import Callable, Dict, Optional

from .auth import AuthorityStore
from .canonical import authorization_digest
from .errors import (
    CapabilityAlreadyHeld, Expired, InvalidInput, InvalidPrice, InvalidRecipient, NotAuthorized, NotFound,
)
from .models import AuthorizationRequest, CapabilityStatus, PublishCapability, normalize_address
from .registry import RegistryStore

logger = logging.getLogger(__name__)


class CapabilityStore:
    """每个账户至多持有一个凭证"""

    def __init__(self):
        self._capabilities: Dict[str, PublishCapability] = {}
        self._lock = threading.Lock()

    def get(self, owner: str) -> Optional[PublishCapability]:
        return self._capabilities.get(normalize_address(owner))

    def held(self, owner: str) -> Optional[PublishCapability]:
        """返回尚未消费的凭证"""
        capability = self.get(owner)
        if capability is None or capability.status != CapabilityStatus.MINTED:
            return None
        return capability

    def put(self, capability: PublishCapability) -> None:
        with self._lock:
            self._capabilities[capability.owner] = capability

    def consume(self, capability_id: str, owner: str, now: int) -> PublishCapability:
        """检查并更新为已消费，一次完成"""
        with self._lock:
            current = self._capabilities.get(owner)
            if (current is None or current.id != capability_id
                    or current.status != CapabilityStatus.MINTED):
                raise NotFound(f"No publish capability held by {owner}")
            consumed = current.model_copy(
                update={"status": CapabilityStatus.CONSUMED, "consumed_at": now})
            self._capabilities[owner] = consumed
            return consumed


class CapabilityMintingEngine:
    def __init__(self, authority: AuthorityStore, store: CapabilityStore,
                 registry: RegistryStore, clock: Callable[[], int]):
        self.authority = authority
        self.store = store
        self.registry = registry
        self.clock = clock

    def _replaceable(self, capability: PublishCapability, now: int) -> bool:
        """已过期或内容已被发布的凭证不可能再发布，允许替换"""
        if capability.is_expired(now):
            return True
        return (self.registry.deduplicates and bool(capability.content_uid)
                and self.registry.uid_registered(capability.content_uid))

    def mint(self, caller: str, request: AuthorizationRequest, signature: bytes) -> PublishCapability:
        """校验授权签名、接收方与有效期后铸造凭证"""
        caller = normalize_address(caller)
        digest = authorization_digest(request)
        if not self.authority.verify(digest, signature):
            logger.warning("Rejected mint for %s: bad authority signature", caller)
            raise NotAuthorized("Authorization signature does not verify")
        if request.recipient != caller:
            logger.warning("Rejected mint for %s: request bound to %s", caller, request.recipient)
            raise InvalidRecipient("Authorization was issued to a different recipient")
        now = self.clock()
        if now > request.expires_at:
            raise Expired(f"Authorization expired at {request.expires_at}")
        # 无法发布的授权不铸造凭证
        if request.price <= 0:
            raise InvalidPrice("Price must be greater than zero")
        if self.registry.deduplicates and not request.content_uid:
            raise InvalidInput("content_uid is required for content-keyed registries")

        existing = self.store.held(caller)
        if existing is not None and not self._replaceable(existing, now):
            raise CapabilityAlreadyHeld(f"{caller} already holds an unconsumed capability")

        capability = PublishCapability(
            owner=caller,
            content_digest=request.content_digest,
            content_uid=request.content_uid,
            price=request.price,
            royalty_rate=request.royalty_rate,
            expires_at=request.expires_at,
            minted_at=now,
        )
        self.store.put(capability)
        logger.info("Minted publish capability %s for %s", capability.id, caller)
        return capability
