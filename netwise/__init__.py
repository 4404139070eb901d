"""NetWise provisioner — remote provisioning and agent orchestration."""

__version__ = "0.1.0"
