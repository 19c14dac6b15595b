"""
L0 Data — ``__init__.py`` re-exports all data constants.
"""

from sbprovision.core.data.platforms import (  # noqa: F401
    COMMON_CHECKS,
    DISTRO_FAMILIES,
    EFI_ARCH,
    ESP_CANDIDATES,
    FAMILIES,
    ICON_SOURCE,
    INSTALL_COMMANDS,
    INSTALL_ENV,
    PACKAGE_MANAGER_PROBES,
    WINDOWS_LOADER,
)
