"""Shared fixtures for registry tests."""

import pytest
from eth_account import Account

from paper_registry.auth import AuthSystem
from paper_registry.config import RegistryConfig
from paper_registry.context import RegistryContext
from paper_registry.models import AuthorizationRequest

NOW = 1_700_000_000


class FakeClock:
    """Manually advanced unix-seconds clock."""

    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def auth_system():
    return AuthSystem()


@pytest.fixture
def authority_keys(auth_system):
    return auth_system.generate_key_pair()


@pytest.fixture
def accounts():
    """Five fresh account addresses: admin, alice, bob, carol, buyer."""
    names = ["admin", "alice", "bob", "carol", "buyer"]
    return {name: Account.create().address for name in names}


@pytest.fixture
def make_request(accounts, clock):
    def _make(**overrides) -> AuthorizationRequest:
        fields = {
            "content_digest": "ab" * 32,
            "content_uid": "doi:10.1000/182",
            "price": 1000,
            "royalty_rate": 500,
            "recipient": accounts["alice"],
            "expires_at": clock.now + 3600,
        }
        fields.update(overrides)
        return AuthorizationRequest(**fields)
    return _make


@pytest.fixture
def sign(auth_system, authority_keys):
    def _sign(request: AuthorizationRequest, private_key: str = None) -> bytes:
        key = private_key or authority_keys["private_key"]
        return bytes.fromhex(auth_system.sign_request(key, request))
    return _sign


@pytest.fixture
def make_context(clock, accounts, authority_keys):
    def _make(initialize: bool = True, **config) -> RegistryContext:
        context = RegistryContext(RegistryConfig(**config), clock=clock)
        if initialize:
            context.initialize(accounts["admin"], bytes.fromhex(authority_keys["public_key"]))
        return context
    return _make


@pytest.fixture
def context(make_context):
    return make_context()


@pytest.fixture
def publish_with(context, make_request, sign):
    """Mint a capability for the recipient and publish with it."""
    def _publish(recipient, authors, cited_records=None, ctx=None, **request_fields):
        ctx = ctx or context
        request = make_request(recipient=recipient, **request_fields)
        ctx.mint(recipient, request, sign(request))
        return ctx.publish(recipient, authors, cited_records)
    return _publish
