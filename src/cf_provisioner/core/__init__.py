"""Core infrastructure components for cf-provisioner."""

from cf_provisioner.core.client import CloudflareClient, GlobalKeyAuth, TokenAuth
from cf_provisioner.core.credentials import CredentialBroker, ScopedCredential
from cf_provisioner.core.discovery import Account, ResourceDiscovery, Zone
from cf_provisioner.core.ledger import LedgerFile, TokenLedger
from cf_provisioner.core.manifest import ConfigWriter

__all__ = [
    "Account",
    "CloudflareClient",
    "ConfigWriter",
    "CredentialBroker",
    "GlobalKeyAuth",
    "LedgerFile",
    "ResourceDiscovery",
    "ScopedCredential",
    "TokenAuth",
    "TokenLedger",
    "Zone",
]
