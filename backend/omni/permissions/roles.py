# Overview: Default permission sets per role.

from .definitions import PERMISSION_DEFINITIONS


DEFAULT_ROLE_PERMISSIONS = {
    "customer": {
        "VIEW_OWN_WARRANTIES",
        "VIEW_NOTIFICATIONS",
    },
    "dealer": {
        "SUBMIT_WARRANTY",
        "VIEW_DEALER_WARRANTIES",
        "VIEW_DEALER_PROFILE",
        "VIEW_NOTIFICATIONS",
    },
    # Admin holds every defined permission
    "admin": {perm[0] for perm in PERMISSION_DEFINITIONS},
}
