import threading
import time
from typing import Callable, List, Optional

from .auth import AuthorityStore
from .capability import CapabilityMintingEngine, CapabilityStore
from .config import RegistryConfig
from .events import EventLog
from .models import AuthorizationRequest, Paper, PublishCapability, normalize_address
from .publication import PublicationEngine
from .registry import RegistryStore
from .settlement import InMemoryLedger, SettlementEngine, SettlementReceipt


def system_clock() -> int:
    return int(time.time())


class RegistryContext:
    """应用上下文：持有全部状态，每个写操作在同一把锁内执行"""

    def __init__(self, config: Optional[RegistryConfig] = None,
                 clock: Callable[[], int] = system_clock,
                 ledger: Optional[InMemoryLedger] = None,
                 events: Optional[EventLog] = None):
        self.config = config or RegistryConfig()
        self.clock = clock
        self.events = events or EventLog()
        self.ledger = ledger or InMemoryLedger(clock)
        self.authority = AuthorityStore()
        self.capabilities = CapabilityStore()
        self.registry = RegistryStore(self.config.identity_strategy)
        self.minting = CapabilityMintingEngine(
            self.authority, self.capabilities, self.registry, clock)
        self.publication = PublicationEngine(self.capabilities, self.registry, self.events, clock)
        self.settlement = SettlementEngine(
            self.registry,
            self.ledger,
            self.events,
            platform_account=self.platform_account,
            fee_bps=self.config.fee_bps,
            purchase_policy=self.config.purchase_policy,
            settlement_mode=self.config.settlement_mode,
        )
        self._lock = threading.RLock()

    def platform_account(self) -> str:
        if self.config.platform_account:
            return normalize_address(self.config.platform_account)
        return self.authority.admin

    def initialize(self, admin: str, public_key: bytes) -> None:
        with self._lock:
            self.authority.initialize(admin, public_key)

    def mint(self, caller: str, request: AuthorizationRequest, signature: bytes) -> PublishCapability:
        with self._lock:
            return self.minting.mint(caller, request, signature)

    def publish(self, caller: str, authors: List[str],
                cited_records: Optional[List[str]] = None) -> Paper:
        with self._lock:
            return self.publication.publish(caller, authors, cited_records)

    def purchase(self, buyer: str, record_identity: str,
                 tendered_amount: Optional[int] = None) -> SettlementReceipt:
        with self._lock:
            return self.settlement.purchase(buyer, record_identity, tendered_amount)
