# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    WARRANTIES = "WARRANTIES"
    DEALERS = "DEALERS"
    NOTIFICATIONS = "NOTIFICATIONS"
    SYSTEM = "SYSTEM"
