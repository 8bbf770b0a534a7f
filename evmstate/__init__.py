"""Account state caching, transitions, bundles and reverts for EVM execution."""

__version__ = "0.1.0"