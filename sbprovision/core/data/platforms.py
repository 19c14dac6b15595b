"""
L0 Data — Platform families and their capability tables.

Pure data. No logic. No imports beyond stdlib.

Paths may contain ``{arch}`` (EFI arch: x64, aa64), ``{machine}``
(kernel machine name: x86_64, aarch64) and ``{esp}`` (the resolved ESP
mount point); the distro resolver expands them.
"""

from __future__ import annotations

# os-release ID / ID_LIKE token → family
DISTRO_FAMILIES: dict[str, str] = {
    "debian": "debian",
    "ubuntu": "debian",
    "linuxmint": "debian",
    "pop": "debian",
    "kali": "debian",
    "arch": "arch",
    "archarm": "arch",
    "manjaro": "arch",
    "endeavouros": "arch",
    "fedora": "fedora",
    "rhel": "fedora",
    "centos": "fedora",
    "rocky": "fedora",
    "almalinux": "fedora",
    "opensuse": "suse",
    "opensuse-leap": "suse",
    "opensuse-tumbleweed": "suse",
    "suse": "suse",
    "sles": "suse",
}

# Probe order when os-release gives no answer: first binary found wins.
PACKAGE_MANAGER_PROBES: list[tuple[str, str]] = [
    ("apt-get", "debian"),
    ("pacman", "arch"),
    ("dnf", "fedora"),
    ("zypper", "suse"),
]

# EFI architecture suffixes, keyed by kernel machine name.
EFI_ARCH: dict[str, str] = {
    "x86_64": "x64",
    "amd64": "x64",
    "aarch64": "aa64",
    "arm64": "aa64",
}

# Candidate ESP mount points, checked in order against the mount table.
ESP_CANDIDATES: list[str] = ["/boot/efi", "/efi", "/boot"]

_BOOT_MANAGER_CHECK = {
    "files": [
        "/usr/share/refind/refind/refind_{arch}.efi",
        "/usr/bin/refind-install",
        "/usr/sbin/refind-install",
    ],
}

FAMILIES: dict[str, dict] = {
    "debian": {
        "package_manager": "apt",
        "binary": "apt-get",
        "esp_path": "/boot/efi",
        "validator_paths": [
            "/usr/lib/shim/shim{arch}.efi.signed",
            "/usr/lib/shim/shim{arch}.efi.signed.latest",
            "/usr/lib/shim/shim{arch}.efi",
        ],
        "key_enrollment_paths": [
            "/usr/lib/shim/mm{arch}.efi.signed",
            "/usr/lib/shim/mm{arch}.efi",
        ],
        "packages": {
            "validator": "shim-signed",
            "key_enrollment_tool": "shim-signed",
            "boot_entry_tool": "efibootmgr",
            "signing_tool": "sbsigntool",
            "boot_manager_package": "refind",
            "certificate_tool": "openssl",
        },
    },
    "arch": {
        "package_manager": "pacman",
        "binary": "pacman",
        "esp_path": "/boot",
        "validator_paths": ["/usr/share/shim-signed/shim{arch}.efi"],
        "key_enrollment_paths": ["/usr/share/shim-signed/mm{arch}.efi"],
        "packages": {
            "validator": "shim-signed",
            "key_enrollment_tool": "shim-signed",
            "boot_entry_tool": "efibootmgr",
            "signing_tool": "sbsigntools",
            "boot_manager_package": "refind",
            "certificate_tool": "openssl",
        },
    },
    "fedora": {
        "package_manager": "dnf",
        "binary": "dnf",
        "esp_path": "/boot/efi",
        "validator_paths": [
            "{esp}/EFI/fedora/shim{arch}.efi",
            "{esp}/EFI/redhat/shim{arch}.efi",
        ],
        "key_enrollment_paths": [
            "{esp}/EFI/fedora/mm{arch}.efi",
            "{esp}/EFI/redhat/mm{arch}.efi",
        ],
        "packages": {
            "validator": "shim-{arch}",
            "key_enrollment_tool": "shim-{arch}",
            "boot_entry_tool": "efibootmgr",
            "signing_tool": "sbsigntools",
            "boot_manager_package": "refind",
            "certificate_tool": "openssl",
        },
    },
    "suse": {
        "package_manager": "zypper",
        "binary": "zypper",
        "esp_path": "/boot/efi",
        "validator_paths": ["/usr/share/efi/{machine}/shim.efi"],
        "key_enrollment_paths": ["/usr/share/efi/{machine}/MokManager.efi"],
        "packages": {
            "validator": "shim",
            "key_enrollment_tool": "shim",
            "boot_entry_tool": "efibootmgr",
            "signing_tool": "sbsigntools",
            "boot_manager_package": "refind",
            "certificate_tool": "openssl",
        },
    },
}

# Existence checks shared by every family. Validator and key-enrollment
# checks come from the family's own path lists.
COMMON_CHECKS: dict[str, dict] = {
    "boot_entry_tool": {"executables": ["efibootmgr"]},
    "signing_tool": {"executables": ["sbsign"]},
    "boot_manager_package": _BOOT_MANAGER_CHECK,
    "certificate_tool": {"executables": ["openssl"]},
}

# Install command per package manager. Package names are appended.
INSTALL_COMMANDS: dict[str, list[str]] = {
    "apt": ["apt-get", "install", "-y", "--no-install-recommends"],
    "pacman": ["pacman", "-S", "--needed", "--noconfirm"],
    "dnf": ["dnf", "install", "-y"],
    "zypper": ["zypper", "--non-interactive", "install", "--no-recommends"],
}

INSTALL_ENV: dict[str, dict[str, str]] = {
    "apt": {"DEBIAN_FRONTEND": "noninteractive"},
}

# rEFInd binary and icon tree shipped by the boot manager package.
BOOT_MANAGER_SOURCE = "{boot_manager_dir}/refind/refind_{arch}.efi"
ICON_SOURCE = "{boot_manager_dir}/icons"

# Windows Boot Manager on the ESP, relative to the ESP root.
WINDOWS_LOADER = "EFI/Microsoft/Boot/bootmgfw.efi"
