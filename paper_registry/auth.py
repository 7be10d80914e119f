from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.exceptions import InvalidSignature
from typing import Optional, Tuple
import logging

from .canonical import authorization_digest
from .errors import AlreadyInitialized, InvalidInput, NotInitialized
from .models import AuthorizationRequest, normalize_address

logger = logging.getLogger(__name__)

PUBLIC_KEY_LENGTH = 32
SIGNATURE_LENGTH = 64
# Ed25519 群的阶 L
GROUP_ORDER = 2 ** 252 + 27742317777372353535851937790883648493
# 曲线参数
FIELD_PRIME = 2 ** 255 - 19
CURVE_D = -121665 * pow(121666, FIELD_PRIME - 2, FIELD_PRIME) % FIELD_PRIME
SQRT_M1 = pow(2, (FIELD_PRIME - 1) // 4, FIELD_PRIME)
COFACTOR_DOUBLINGS = 3
IDENTITY = (0, 1)


def _decode_point(encoded: bytes) -> Optional[Tuple[int, int]]:
    """解码曲线点；非规范的 y 先约化，不在曲线上返回 None"""
    p = FIELD_PRIME
    raw = int.from_bytes(encoded, "little")
    sign = raw >> 255
    y = (raw & ((1 << 255) - 1)) % p
    u = (y * y - 1) % p
    v = (CURVE_D * y * y + 1) % p
    x2 = u * pow(v, p - 2, p) % p
    x = pow(x2, (p + 3) // 8, p)
    if (x * x - x2) % p != 0:
        x = x * SQRT_M1 % p
    if (x * x - x2) % p != 0:
        return None
    if x & 1 != sign:
        x = (p - x) % p
    return x, y


def _add_points(a: Tuple[int, int], b: Tuple[int, int]) -> Tuple[int, int]:
    p = FIELD_PRIME
    (x1, y1), (x2, y2) = a, b
    t = CURVE_D * x1 * x2 * y1 * y2 % p
    x3 = (x1 * y2 + x2 * y1) * pow(1 + t, p - 2, p) % p
    y3 = (y1 * y2 + x1 * x2) * pow(1 - t, p - 2, p) % p
    return x3, y3


def _is_weak_point(encoded: bytes) -> bool:
    """非规范编码、不在曲线上或小阶的点都视为弱点"""
    if len(encoded) != PUBLIC_KEY_LENGTH:
        return True
    raw = int.from_bytes(encoded, "little")
    if raw & ((1 << 255) - 1) >= FIELD_PRIME:
        return True
    point = _decode_point(encoded)
    if point is None:
        return True
    if point[0] == 0 and raw >> 255:
        return True
    for _ in range(COFACTOR_DOUBLINGS):
        point = _add_points(point, point)
    return point == IDENTITY


def _is_canonical_signature(signature: bytes) -> bool:
    """严格模式：S 必须小于 L，R 不能是弱点"""
    if len(signature) != SIGNATURE_LENGTH:
        return False
    s = int.from_bytes(signature[32:], "little")
    return s < GROUP_ORDER and not _is_weak_point(signature[:32])


def verify_signature(message_digest: bytes, signature: bytes, public_key: bytes) -> bool:
    """验证签名"""
    if _is_weak_point(public_key) or not _is_canonical_signature(signature):
        return False
    try:
        key = Ed25519PublicKey.from_public_bytes(public_key)
        key.verify(signature, message_digest)
        return True
    except (InvalidSignature, ValueError):
        return False


class AuthSystem:
    """开发工具：生成授权方密钥并对授权请求签名"""

    def generate_key_pair(self):
        """生成Ed25519密钥对"""
        private_key = Ed25519PrivateKey.generate()

        private_raw = private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption()
        )
        public_raw = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw
        )

        return {
            'private_key': private_raw.hex(),
            'public_key': public_raw.hex()
        }

    def sign_message(self, private_key_hex: str, message: bytes) -> str:
        """使用私钥签名消息"""
        try:
            private_key = Ed25519PrivateKey.from_private_bytes(bytes.fromhex(private_key_hex))
        except ValueError:
            raise InvalidInput("private_key must be 32 bytes of hex")
        return private_key.sign(message).hex()

    def sign_request(self, private_key_hex: str, request: AuthorizationRequest) -> str:
        """对授权请求的规范化摘要签名"""
        return self.sign_message(private_key_hex, authorization_digest(request))


class AuthorityStore:
    """每个部署唯一的授权方公钥，初始化后不可变"""

    def __init__(self):
        self._admin: Optional[str] = None
        self._public_key: Optional[bytes] = None

    @property
    def is_initialized(self) -> bool:
        return self._public_key is not None

    def initialize(self, admin: str, public_key: bytes) -> None:
        if self.is_initialized:
            raise AlreadyInitialized("Authority key is already set")
        admin = normalize_address(admin)
        if len(public_key) != PUBLIC_KEY_LENGTH:
            raise InvalidInput("Authority public key must be 32 bytes")
        if _is_weak_point(public_key):
            raise InvalidInput("Authority public key is not a valid Ed25519 key")
        self._admin = admin
        self._public_key = bytes(public_key)
        logger.info("Authority initialized by %s", admin)

    @property
    def public_key(self) -> bytes:
        if self._public_key is None:
            raise NotInitialized("Authority key has not been initialized")
        return self._public_key

    @property
    def admin(self) -> str:
        if self._admin is None:
            raise NotInitialized("Authority key has not been initialized")
        return self._admin

    def verify(self, message_digest: bytes, signature: bytes) -> bool:
        """验证授权方签名"""
        return verify_signature(message_digest, signature, self.public_key)
