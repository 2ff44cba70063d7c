"""
Route Governance Package

Core imports are lazily loaded. For direct access, import from submodules:

    from route.chain import Chain
    from route.tokens import RouteToken
    from route.vesting import TreasuryVesterFactory
    from route.governance import GovernorAlpha, Timelock
"""

__version__ = "0.1.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    if name == 'Chain':
        from .chain import Chain
        return Chain
    elif name == 'RouteToken':
        from .tokens import RouteToken
        return RouteToken
    elif name == 'TreasuryVesterFactory':
        from .vesting import TreasuryVesterFactory
        return TreasuryVesterFactory
    elif name == 'GovernorAlpha':
        from .governance import GovernorAlpha
        return GovernorAlpha
    elif name == 'Timelock':
        from .governance import Timelock
        return Timelock
    raise AttributeError(f"module 'route' has no attribute {name!r}")

__all__ = ['Chain', 'RouteToken', 'TreasuryVesterFactory', 'GovernorAlpha', 'Timelock']
