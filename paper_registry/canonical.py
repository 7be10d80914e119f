import hashlib
import json
from typing import Any, Dict

from .models import AuthorizationRequest

DOMAIN_TAG = "paper-registry/publish-authorization/v1"


def _canonical_fields(request: AuthorizationRequest) -> Dict[str, Any]:
    # 字段总是全部出现，缺省值编码为 null
    return {
        "content_digest": request.content_digest,
        "content_uid": request.content_uid,
        "price": request.price,
        "royalty_rate": request.royalty_rate,
        "recipient": request.recipient,
        "expires_at": request.expires_at,
    }


def canonicalize(request: AuthorizationRequest) -> bytes:
    """将授权请求编码为确定的字节序列"""
    document = {"domain": DOMAIN_TAG, "payload": _canonical_fields(request)}
    return json.dumps(document, sort_keys=True, separators=(",", ":")).encode("ascii")


def authorization_digest(request: AuthorizationRequest) -> bytes:
    """规范化字节的 SHA3-256 摘要，即授权方签名的内容"""
    return hashlib.sha3_256(canonicalize(request)).digest()
