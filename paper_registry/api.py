from fastapi import FastAPI, Depends, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import List, Optional
from pydantic import BaseModel, Field
import logging

import uvicorn

from .auth import AuthSystem
from .config import RegistryConfig, configure_logging
from .context import RegistryContext
from .errors import InvalidInput, NotFound, RegistryError
from .models import AuthorizationRequest, LedgerTransaction, Paper, PublishCapability, normalize_address
from .settlement import SettlementReceipt

logger = logging.getLogger(__name__)


# 请求模型
class AuthorityInit(BaseModel):
    admin: str
    public_key: str


class MintRequest(BaseModel):
    request: AuthorizationRequest
    signature: str


class PaperCreate(BaseModel):
    authors: List[str]
    cited_records: List[str] = []


class PurchaseRequest(BaseModel):
    amount: Optional[int] = None


class CreditRequest(BaseModel):
    amount: int = Field(gt=0)
    reason: str = "credit"


class SignRequest(BaseModel):
    private_key: str
    request: AuthorizationRequest


def _from_hex(value: str, field: str) -> bytes:
    try:
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    except ValueError:
        raise InvalidInput(f"{field} must be hex encoded")


# 依赖项
def caller_identity(caller: str = Header(...)) -> str:
    return normalize_address(caller)


def create_app(context: Optional[RegistryContext] = None,
               config: Optional[RegistryConfig] = None) -> FastAPI:
    config = config or (context.config if context else RegistryConfig.from_env())
    context = context or RegistryContext(config)
    auth_system = AuthSystem()

    app = FastAPI(title="Paper Registry API")
    app.state.context = context

    # 添加CORS中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError):
        return JSONResponse(status_code=exc.http_status,
                            content={"detail": exc.detail, "error": exc.code})

    # 授权方接口
    @app.post("/authority/init")
    def init_authority(body: AuthorityInit):
        context.initialize(body.admin, _from_hex(body.public_key, "public_key"))
        return {"admin": context.authority.admin}

    @app.get("/authority")
    def get_authority():
        if not context.authority.is_initialized:
            return {"initialized": False}
        return {
            "initialized": True,
            "admin": context.authority.admin,
            "public_key": context.authority.public_key.hex(),
        }

    # 凭证接口
    @app.post("/capabilities", response_model=PublishCapability)
    def mint_capability(body: MintRequest, caller: str = Depends(caller_identity)):
        return context.mint(caller, body.request, _from_hex(body.signature, "signature"))

    @app.get("/capabilities/{owner}", response_model=PublishCapability)
    def get_capability(owner: str):
        capability = context.capabilities.get(owner)
        if capability is None:
            raise NotFound(f"No capability recorded for {owner}")
        return capability

    # 论文相关接口
    @app.get("/papers", response_model=List[Paper])
    def get_papers():
        """获取所有论文列表"""
        return context.registry.list()

    @app.post("/papers", response_model=Paper)
    def publish_paper(body: PaperCreate, caller: str = Depends(caller_identity)):
        return context.publish(caller, body.authors, body.cited_records)

    @app.get("/papers/uid/{content_uid}", response_model=Paper)
    def get_paper_by_uid(content_uid: str):
        return context.registry.require(context.registry.key_for_uid(content_uid))

    @app.get("/papers/{paper_id}", response_model=Paper)
    def get_paper(paper_id: str):
        return context.registry.require(paper_id)

    @app.post("/papers/{paper_id}/purchase", response_model=SettlementReceipt)
    def purchase_paper(paper_id: str, body: Optional[PurchaseRequest] = None,
                             caller: str = Depends(caller_identity)):
        amount = body.amount if body else None
        return context.purchase(caller, paper_id, amount)

    # 账户相关接口
    @app.get("/accounts/{account}/balance")
    def get_balance(account: str):
        return {"balance": context.ledger.balance(account)}

    if config.enable_faucet:
        @app.post("/accounts/{account}/credit")
        def credit_account(account: str, body: CreditRequest):
            return {"balance": context.ledger.credit(account, body.amount, body.reason)}

    @app.get("/accounts/{account}/papers", response_model=List[Paper])
    def get_account_papers(account: str):
        """获取作者的所有论文"""
        registry = context.registry
        return [registry.require(paper_id)
                for paper_id in registry.get_author_papers(normalize_address(account))]

    @app.get("/accounts/{account}/transactions", response_model=List[LedgerTransaction])
    def get_transactions(account: str):
        return context.ledger.history(account)

    # 事件与统计信息接口
    @app.get("/events")
    def get_events(kind: Optional[str] = None):
        return context.events.list(kind)

    @app.get("/stats/network")
    def get_network_stats():
        return context.registry.get_citation_network_stats()

    @app.get("/stats/ledger")
    def get_ledger_stats():
        return context.ledger.stats()

    # 工具接口
    @app.post("/auth/generate-keys")
    def generate_keys():
        return auth_system.generate_key_pair()

    @app.post("/auth/sign")
    def sign_request(body: SignRequest):
        """使用私钥对授权请求签名"""
        return {"signature": auth_system.sign_request(body.private_key, body.request)}

    # 请求日志中间件
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info("%s %s -> %d", request.method, request.url.path, response.status_code)
        return response

    return app


app = create_app()

if __name__ == "__main__":
    settings = app.state.context.config
    configure_logging(settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port)
