"""Tool adapters: openssl, sbsign and efibootmgr."""
