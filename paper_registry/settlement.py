from pydantic import BaseModel
from typing import Callable, Dict, List, Optional
import logging
import threading

from .errors import InsufficientFunds, InvalidInput, InvalidPrice
from .events import EventLog, Purchased, RoyaltyDistributed, SettlementIntent
from .models import LedgerTransaction, MAX_BPS, Paper, normalize_address
from .registry import RegistryStore

logger = logging.getLogger(__name__)

DEFAULT_FEE_BPS = 1000  # 平台抽成 10%

EXACT = "exact"
CAPTURE_TENDERED = "capture_tendered"
PURCHASE_POLICIES = (EXACT, CAPTURE_TENDERED)

LEDGER = "ledger"
DELEGATED = "delegated"
SETTLEMENT_MODES = (LEDGER, DELEGATED)


class FeeSplit(BaseModel):
    amount: int
    platform_fee: int
    author_share: int
    author_count: int
    per_author_amount: int
    remainder: int
    platform_total: int


def split_payment(amount: int, author_count: int, fee_bps: int = DEFAULT_FEE_BPS) -> FeeSplit:
    """按基点整数运算拆分货款，余数归平台"""
    if amount < 0:
        raise InvalidPrice("Amount must not be negative")
    if author_count < 1:
        raise InvalidInput("A paper needs at least one author")
    if not 0 <= fee_bps <= MAX_BPS:
        raise InvalidInput(f"fee_bps must be between 0 and {MAX_BPS}")

    platform_fee = amount * fee_bps // MAX_BPS
    author_share = amount - platform_fee
    per_author_amount = author_share // author_count
    remainder = author_share - per_author_amount * author_count
    return FeeSplit(
        amount=amount,
        platform_fee=platform_fee,
        author_share=author_share,
        author_count=author_count,
        per_author_amount=per_author_amount,
        remainder=remainder,
        platform_total=platform_fee + remainder,
    )


class Funds:
    """从账本中取出、尚未存入任何账户的资金"""

    def __init__(self, amount: int):
        self.amount = amount

    def split(self, amount: int) -> "Funds":
        if amount < 0 or amount > self.amount:
            raise InsufficientFunds(f"Cannot split {amount} from {self.amount}")
        self.amount -= amount
        return Funds(amount)

    def ensure_empty(self) -> None:
        if self.amount != 0:
            raise RuntimeError(f"{self.amount} left undistributed")


class InMemoryLedger:
    """进程内结算账本"""

    def __init__(self, clock: Callable[[], int]):
        self.clock = clock
        self.balances: Dict[str, int] = {}
        self.transactions: List[LedgerTransaction] = []
        self.total_supply = 0
        self._lock = threading.RLock()

    def _record(self, account: str, amount: int, transaction_type: str, reason: str) -> None:
        self.transactions.append(LedgerTransaction(
            account=account,
            amount=amount,
            transaction_type=transaction_type,
            reason=reason,
            created_at=self.clock(),
        ))

    def credit(self, account: str, amount: int, reason: str = "credit") -> int:
        """向账户注入资金（本地测试用）"""
        if amount <= 0:
            raise InvalidInput("Credit amount must be positive")
        account = normalize_address(account)
        with self._lock:
            self.balances[account] = self.balances.get(account, 0) + amount
            self.total_supply += amount
            self._record(account, amount, "DEPOSIT", reason)
            return self.balances[account]

    def withdraw(self, account: str, amount: int, reason: str = "withdraw") -> Funds:
        account = normalize_address(account)
        with self._lock:
            balance = self.balances.get(account, 0)
            if amount < 0 or balance < amount:
                raise InsufficientFunds(f"{account} has {balance}, needs {amount}")
            self.balances[account] = balance - amount
            self._record(account, amount, "WITHDRAW", reason)
            return Funds(amount)

    def deposit(self, account: str, funds: Funds, reason: str = "deposit") -> None:
        account = normalize_address(account)
        with self._lock:
            amount = funds.amount
            funds.amount = 0
            self.balances[account] = self.balances.get(account, 0) + amount
            self._record(account, amount, "DEPOSIT", reason)

    def balance(self, account: str) -> int:
        return self.balances.get(normalize_address(account), 0)

    def history(self, account: str) -> List[LedgerTransaction]:
        """获取账户的交易历史"""
        account = normalize_address(account)
        return [tx for tx in self.transactions if tx.account == account]

    def stats(self) -> Dict:
        """获取账本统计信息"""
        return {
            'total_supply': self.total_supply,
            'total_accounts': len(self.balances),
            'total_transactions': len(self.transactions),
            'max_balance': max(self.balances.values(), default=0)
        }


class Payout(BaseModel):
    recipient: str
    amount: int


class SettlementReceipt(BaseModel):
    record_identity: str
    buyer: str
    amount: int
    split: FeeSplit
    payouts: List[Payout]
    mode: str


class SettlementEngine:
    def __init__(self, registry: RegistryStore, ledger: InMemoryLedger, events: EventLog,
                 platform_account: Callable[[], str], fee_bps: int = DEFAULT_FEE_BPS,
                 purchase_policy: str = EXACT, settlement_mode: str = LEDGER):
        if purchase_policy not in PURCHASE_POLICIES:
            raise InvalidInput(f"Unknown purchase policy: {purchase_policy}")
        if settlement_mode not in SETTLEMENT_MODES:
            raise InvalidInput(f"Unknown settlement mode: {settlement_mode}")
        self.registry = registry
        self.ledger = ledger
        self.events = events
        self.platform_account = platform_account
        self.fee_bps = fee_bps
        self.purchase_policy = purchase_policy
        self.settlement_mode = settlement_mode

    def charge_amount(self, paper: Paper, tendered_amount: Optional[int]) -> int:
        """根据购买策略确定实际扣款金额"""
        if tendered_amount is None:
            return paper.price
        if self.purchase_policy == EXACT:
            if tendered_amount != paper.price:
                raise InvalidPrice(f"Tendered {tendered_amount}, price is {paper.price}")
            return paper.price
        if tendered_amount < paper.price:
            raise InvalidPrice(f"Tendered {tendered_amount}, price is {paper.price}")
        # capture_tendered: 超付部分一并收取
        return tendered_amount

    def payouts_for(self, paper: Paper, split: FeeSplit) -> List[Payout]:
        payouts = [Payout(recipient=self.platform_account(), amount=split.platform_total)]
        payouts.extend(Payout(recipient=author, amount=split.per_author_amount)
                       for author in paper.authors)
        return payouts

    def purchase(self, buyer: str, record_identity: str,
                 tendered_amount: Optional[int] = None) -> SettlementReceipt:
        """一次扣款后按作者顺序分账；委托模式下只发出结算意图，成功后才写事件"""
        buyer = normalize_address(buyer)
        paper = self.registry.require(record_identity)
        amount = self.charge_amount(paper, tendered_amount)
        split = split_payment(amount, len(paper.authors), self.fee_bps)
        payouts = self.payouts_for(paper, split)

        pending = []
        if self.settlement_mode == LEDGER:
            reason = f"purchase of {paper.id}"
            funds = self.ledger.withdraw(buyer, amount, reason)
            for payout in payouts:
                self.ledger.deposit(payout.recipient, funds.split(payout.amount), reason)
            funds.ensure_empty()
        else:
            pending.extend(SettlementIntent(record_identity=paper.id, recipient=p.recipient,
                                            amount=p.amount)
                           for p in payouts)

        pending.append(Purchased(record_identity=paper.id, buyer=buyer, amount=amount))
        pending.append(RoyaltyDistributed(
            record_identity=paper.id,
            buyer=buyer,
            amount=amount,
            platform_fee=split.platform_fee,
            author_share=split.author_share,
            per_author_amount=split.per_author_amount,
        ))
        self.events.emit_all(pending)
        logger.info("Settled purchase of %s by %s for %d (%s)", paper.id, buyer, amount,
                    self.settlement_mode)
        return SettlementReceipt(
            record_identity=paper.id,
            buyer=buyer,
            amount=amount,
            split=split,
            payouts=payouts,
            mode=self.settlement_mode,
        )
