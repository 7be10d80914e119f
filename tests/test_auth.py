"""Tests for signature verification and the authority store."""

import pytest

from paper_registry.auth import GROUP_ORDER, AuthorityStore, _add_points, _decode_point, verify_signature
from paper_registry.errors import AlreadyInitialized, InvalidInput, NotInitialized


@pytest.fixture
def signed(auth_system, authority_keys):
    message = bytes(range(32))
    signature = bytes.fromhex(auth_system.sign_message(authority_keys["private_key"], message))
    return message, signature, bytes.fromhex(authority_keys["public_key"])


class TestVerifySignature:
    """Test strict Ed25519 verification."""

    def test_valid_signature(self, signed):
        message, signature, public_key = signed
        assert verify_signature(message, signature, public_key)

    def test_tampered_message(self, signed):
        message, signature, public_key = signed
        tampered = bytes([message[0] ^ 1]) + message[1:]
        assert not verify_signature(tampered, signature, public_key)

    def test_wrong_key(self, signed, auth_system):
        message, signature, _ = signed
        other = bytes.fromhex(auth_system.generate_key_pair()["public_key"])
        assert not verify_signature(message, signature, other)

    def test_malleable_signature_rejected(self, signed):
        """Test S + L encodes the same point but is rejected."""
        message, signature, public_key = signed
        s = int.from_bytes(signature[32:], "little")
        malleated = signature[:32] + (s + GROUP_ORDER).to_bytes(32, "little")
        assert not verify_signature(message, malleated, public_key)

    @pytest.mark.parametrize("cut", [0, 1, 63])
    def test_truncated_signature(self, signed, cut):
        message, signature, public_key = signed
        assert not verify_signature(message, signature[:cut], public_key)

    def test_bad_key_length(self, signed):
        message, signature, public_key = signed
        assert not verify_signature(message, signature, public_key[:31])


class TestAuthSystem:
    """Test developer key tooling."""

    def test_generate_key_pair(self, auth_system):
        keys = auth_system.generate_key_pair()
        assert len(bytes.fromhex(keys["private_key"])) == 32
        assert len(bytes.fromhex(keys["public_key"])) == 32

    def test_sign_with_bad_private_key(self, auth_system):
        with pytest.raises(InvalidInput):
            auth_system.sign_message("zz", b"message")


class TestAuthorityStore:
    """Test one-shot authority initialization."""

    def test_initialize(self, accounts, authority_keys):
        store = AuthorityStore()
        store.initialize(accounts["admin"].lower(), bytes.fromhex(authority_keys["public_key"]))
        assert store.is_initialized
        assert store.admin == accounts["admin"]
        assert store.public_key.hex() == authority_keys["public_key"]

    def test_initialize_twice(self, accounts, authority_keys, auth_system):
        store = AuthorityStore()
        store.initialize(accounts["admin"], bytes.fromhex(authority_keys["public_key"]))
        other = bytes.fromhex(auth_system.generate_key_pair()["public_key"])
        with pytest.raises(AlreadyInitialized):
            store.initialize(accounts["bob"], other)
        assert store.public_key.hex() == authority_keys["public_key"]
        assert store.admin == accounts["admin"]

    def test_bad_key_length(self, accounts):
        store = AuthorityStore()
        with pytest.raises(InvalidInput):
            store.initialize(accounts["admin"], b"\x01" * 16)
        assert not store.is_initialized

    def test_bad_admin(self, authority_keys):
        store = AuthorityStore()
        with pytest.raises(InvalidInput):
            store.initialize("not-an-address", bytes.fromhex(authority_keys["public_key"]))

    def test_uninitialized(self):
        store = AuthorityStore()
        with pytest.raises(NotInitialized):
            store.public_key
        with pytest.raises(NotInitialized):
            store.admin


P = 2 ** 255 - 19
IDENTITY_POINT = b"\x01" + b"\x00" * 31


def _multiply(point, scalar):
    result = (0, 1)
    while scalar:
        if scalar & 1:
            result = _add_points(result, point)
        point = _add_points(point, point)
        scalar >>= 1
    return result


def _encode(point):
    x, y = point
    return (y | ((x & 1) << 255)).to_bytes(32, "little")


WEAK_POINTS = [
    IDENTITY_POINT,
    b"\x00" * 32,                              # y = 0，4 阶
    (P - 1).to_bytes(32, "little"),            # y = -1，2 阶
    (P + 1).to_bytes(32, "little"),            # 单位元的非规范编码
    P.to_bytes(32, "little"),                  # y = 0 的非规范编码
    b"\x01" + b"\x00" * 30 + b"\x80",          # 单位元带符号位
]


class TestWeakPoints:
    """Test rejection of small-order and non-canonical points."""

    @pytest.mark.parametrize("point", WEAK_POINTS)
    def test_weak_authority_key_rejected(self, accounts, point):
        store = AuthorityStore()
        with pytest.raises(InvalidInput):
            store.initialize(accounts["admin"], point)
        assert not store.is_initialized

    def test_order_eight_points_rejected(self, accounts):
        """Test points of order eight, taken from the torsion part of curve points."""
        found = set()
        for y in range(2, 64):
            point = _decode_point(y.to_bytes(32, "little"))
            if point is None:
                continue
            torsion = _multiply(point, GROUP_ORDER)
            if _multiply(torsion, 4) != (0, 1):
                found.add(_encode(torsion))
        assert found
        for encoded in found:
            store = AuthorityStore()
            with pytest.raises(InvalidInput):
                store.initialize(accounts["admin"], encoded)

    def test_identity_key_forgery(self):
        """Test R = identity, S = 0 does not verify under the identity key."""
        forged = IDENTITY_POINT + b"\x00" * 32
        assert not verify_signature(b"\x00" * 32, forged, IDENTITY_POINT)

    @pytest.mark.parametrize("r", WEAK_POINTS)
    def test_weak_r_rejected(self, signed, r):
        message, signature, public_key = signed
        assert not verify_signature(message, r + signature[32:], public_key)

    def test_real_key_is_not_weak(self, accounts, authority_keys):
        store = AuthorityStore()
        store.initialize(accounts["admin"], bytes.fromhex(authority_keys["public_key"]))
        assert store.is_initialized

    def test_identity_key_not_accepted_by_context(self, make_context, accounts):
        context = make_context(initialize=False)
        with pytest.raises(InvalidInput):
            context.initialize(accounts["admin"], IDENTITY_POINT)
        assert not context.authority.is_initialized
