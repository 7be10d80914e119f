from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from enum import Enum
import uuid

from web3 import Web3

from .errors import InvalidInput

MAX_BPS = 10000


def normalize_address(address: str) -> str:
    """校验账户地址并转换为校验和格式"""
    if not isinstance(address, str) or not Web3.is_address(address):
        raise InvalidInput(f"Invalid account address: {address!r}")
    return Web3.to_checksum_address(address)


def normalize_digest(value: str) -> str:
    """内容摘要统一为小写十六进制"""
    digest = value[2:] if value.startswith("0x") else value
    try:
        raw = bytes.fromhex(digest)
    except ValueError:
        raise InvalidInput("content_digest must be hex encoded")
    if not raw:
        raise InvalidInput("content_digest must not be empty")
    return raw.hex()


class CapabilityStatus(str, Enum):
    MINTED = "minted"
    CONSUMED = "consumed"


class AuthorizationRequest(BaseModel):
    content_digest: str
    content_uid: Optional[str] = None
    price: int = Field(ge=0)  # 最小货币单位
    royalty_rate: Optional[int] = Field(default=None, ge=0, le=MAX_BPS)
    recipient: str
    expires_at: int  # unix 秒

    @field_validator("content_digest")
    @classmethod
    def _digest(cls, value: str) -> str:
        try:
            return normalize_digest(value)
        except InvalidInput as e:
            raise ValueError(e.detail)

    @field_validator("recipient")
    @classmethod
    def _recipient(cls, value: str) -> str:
        try:
            return normalize_address(value)
        except InvalidInput as e:
            raise ValueError(e.detail)


class PublishCapability(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner: str
    content_digest: str
    content_uid: Optional[str] = None
    price: int
    royalty_rate: Optional[int] = None
    expires_at: int
    status: CapabilityStatus = CapabilityStatus.MINTED
    minted_at: int
    consumed_at: Optional[int] = None

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at


class Paper(BaseModel):
    id: str
    authors: List[str]  # 作者地址，顺序即作者序号
    price: int
    royalty_rate: Optional[int] = None
    cited_records: List[str] = []  # 被引用论文ID
    content_digest: str
    content_uid: Optional[str] = None
    publisher: str
    published_at: int


class LedgerTransaction(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    account: str
    amount: int
    transaction_type: str  # "DEPOSIT" or "WITHDRAW"
    reason: str
    created_at: int
