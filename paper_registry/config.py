from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional
import logging
import os

ENV_PREFIX = "PAPER_REGISTRY_"


class RegistryConfig(BaseModel):
    fee_bps: int = Field(default=1000, ge=0, le=10000)
    identity_strategy: Literal["counter", "content_uid"] = "content_uid"
    purchase_policy: Literal["exact", "capture_tendered"] = "exact"
    settlement_mode: Literal["ledger", "delegated"] = "ledger"
    platform_account: Optional[str] = None  # 未设置时使用管理员地址
    enable_faucet: bool = False  # 开放 /accounts/{account}/credit 注资接口
    cors_origins: List[str] = ["http://localhost:8097"]
    host: str = "127.0.0.1"
    port: int = 8090
    log_level: str = "INFO"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @classmethod
    def from_env(cls, environ=None) -> "RegistryConfig":
        """从 PAPER_REGISTRY_* 环境变量读取配置"""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in environ:
                values[name] = environ[key]
        return cls(**values)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
