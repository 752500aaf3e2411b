"""Fleet-Deployer: run provider recipes across many services, step by step."""

__version__ = "0.1.0"
