"""The provisioning state machine."""
