"""Adapters — bindings for the external tools the engine drives.

Public re-exports for convenient access.
"""

from sbprovision.adapters.base import Adapter, ExecutionContext
from sbprovision.adapters.mock import MockAdapter
from sbprovision.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]


def default_registry() -> AdapterRegistry:
    """Registry wired with the real tool adapters."""
    from sbprovision.adapters.efi.efibootmgr import EfibootmgrAdapter
    from sbprovision.adapters.efi.openssl import OpenSSLAdapter
    from sbprovision.adapters.efi.sbsign import SbsignAdapter
    from sbprovision.adapters.packages.manager import PackageManagerAdapter
    from sbprovision.adapters.shell.filesystem import FilesystemAdapter

    registry = AdapterRegistry()
    registry.register(FilesystemAdapter())
    registry.register(PackageManagerAdapter())
    registry.register(OpenSSLAdapter())
    registry.register(SbsignAdapter())
    registry.register(EfibootmgrAdapter())
    return registry
