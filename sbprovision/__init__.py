"""sbprovision — Secure Boot trust-chain provisioning for rEFInd."""

__version__ = "0.1.0"
