"""
Route Deployment

Bootstraps a chain host with the full governance stack from a RouteConfig:

    token     (deployer nonce 0)
    timelock  (deployer nonce 1, admin = future governor address)
    governor  (deployer nonce 2)
    factory   (deployer nonce 3, optional)
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .chain import Chain
from .config import RouteConfig, load_config
from .crypto import generate_contract_address, normalize_address
from .governance import GovernorAlpha, Timelock
from .logger import apply_logging_config, get_logger
from .tokens import RouteToken
from .vesting import TreasuryVesterFactory

logger = get_logger(__name__)


@dataclass
class Deployment:
    chain: Chain
    token: RouteToken
    timelock: Timelock
    governor: GovernorAlpha
    factory: Optional[TreasuryVesterFactory] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain.chain_id,
            "token": self.token.address,
            "timelock": self.timelock.address,
            "governor": self.governor.address,
            "factory": self.factory.address if self.factory else None,
        }


def deploy(
    deployer: str,
    config: Optional[RouteConfig] = None,
    guardian: Optional[str] = None,
    with_factory: bool = True,
    **token_kwargs,
) -> Deployment:
    """
    Deploy token, timelock and governor (and a vester factory) on a new chain.

    The whole supply goes to *deployer*; *guardian* defaults to *deployer*.
    Extra keyword arguments (e.g. ``verify_signature_fn``) go to RouteToken.
    """
    if config is None:
        config = load_config()
    config.validate()
    apply_logging_config(config.logging)

    deployer = normalize_address(deployer)
    chain = Chain(config.chain)
    token = RouteToken.from_config(chain, deployer, config.token, **token_kwargs)

    # The governor is deployed right after the timelock it administers
    governor_address = generate_contract_address(deployer, chain.nonce_of(deployer) + 1)
    timelock = Timelock(chain, deployer, governor_address, config.governance.timelock_delay)
    governor = GovernorAlpha(
        chain,
        deployer,
        timelock.address,
        token.address,
        guardian or deployer,
        config.governance,
    )
    if governor.address != governor_address:
        raise RuntimeError(f"Governor deployed at {governor.address}, expected {governor_address}")

    factory = TreasuryVesterFactory(chain, deployer, token.address) if with_factory else None

    deployment = Deployment(chain, token, timelock, governor, factory)
    logger.info(f"Deployed Route governance: {deployment.to_dict()}")
    return deployment
