"""
Deployment Test Suite

Coverage:
  - deploy(): address layout, config wiring, timelock admin, factory
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from route.config import ChainConfig, GovernanceConfig, RouteConfig, TokenConfig
from route.crypto import generate_contract_address, normalize_address
from route.deploy import deploy
from route.exceptions import ConfigurationError, InvalidSignatureError


WALLET = normalize_address("0x" + "a1" * 20)
GUARDIAN = normalize_address("0x" + "b2" * 20)


def make_config(**governance) -> RouteConfig:
    return RouteConfig(
        chain=ChainConfig(chain_id=31337, genesis_time=1_700_000_000),
        token=TokenConfig(total_supply=1_000_000),
        governance=GovernanceConfig(**governance),
    )


class TestDeploy:

    def test_address_layout(self):
        d = deploy(WALLET, make_config())
        assert d.token.address == generate_contract_address(WALLET, 0)
        assert d.timelock.address == generate_contract_address(WALLET, 1)
        assert d.governor.address == generate_contract_address(WALLET, 2)
        assert d.factory.address == generate_contract_address(WALLET, 3)
        assert d.timelock.admin == d.governor.address

    def test_config_wiring(self):
        d = deploy(WALLET, make_config(quorum_votes=50_000, timelock_delay=3 * 86400))
        assert d.chain.chain_id == 31337
        assert d.chain.timestamp == 1_700_000_000
        assert d.token.total_supply == 1_000_000 * 10 ** 18
        assert d.governor.quorum_votes == 50_000 * 10 ** 18
        assert d.timelock.delay == 3 * 86400

    def test_guardian(self):
        d = deploy(WALLET, make_config(), guardian=GUARDIAN, with_factory=False)
        assert d.governor.guardian == GUARDIAN
        assert d.factory is None
        assert d.to_dict()["factory"] is None

    def test_invalid_config(self):
        with pytest.raises(ConfigurationError):
            deploy(WALLET, make_config(timelock_delay=1))

    @pytest.mark.asyncio
    async def test_token_kwargs(self):
        d = deploy(WALLET, make_config(), verify_signature_fn=lambda *_: False)
        with pytest.raises(InvalidSignatureError):
            await d.token.permit(WALLET, GUARDIAN, 1, 2 ** 255)
