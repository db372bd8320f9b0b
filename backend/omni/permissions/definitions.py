# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- WARRANTIES --

WARRANTY_PERMISSIONS = [
    (
        "VIEW_OWN_WARRANTIES",
        "View Own Warranties",
        "View warranty registrations issued to the signed-in customer's email",
        PermissionCategory.WARRANTIES,
    ),
    (
        "SUBMIT_WARRANTY",
        "Submit Warranty",
        "Register a warranty for a sold vehicle (enters PendingReview)",
        PermissionCategory.WARRANTIES,
    ),
    (
        "VIEW_DEALER_WARRANTIES",
        "View Dealer Warranties",
        "View registrations submitted by the signed-in dealer",
        PermissionCategory.WARRANTIES,
    ),
    (
        "VIEW_ALL_WARRANTIES",
        "View All Warranties",
        "View every warranty registration (review queue)",
        PermissionCategory.WARRANTIES,
    ),
    (
        "REVIEW_WARRANTIES",
        "Review Warranties",
        "Approve or decline PendingReview registrations",
        PermissionCategory.WARRANTIES,
    ),
    (
        "OVERRIDE_DUPLICATE_VIN",
        "Override Duplicate VIN",
        "Submit a registration even when the duplicate-VIN policy would block it",
        PermissionCategory.WARRANTIES,
    ),
]


# -- DEALERS --

DEALER_PERMISSIONS = [
    (
        "VIEW_DEALER_PROFILE",
        "View Dealer Profile",
        "View the signed-in dealer's business profile",
        PermissionCategory.DEALERS,
    ),
]


# -- NOTIFICATIONS --

NOTIFICATION_PERMISSIONS = [
    (
        "VIEW_NOTIFICATIONS",
        "View Notifications",
        "Read and dismiss own in-app notifications",
        PermissionCategory.NOTIFICATIONS,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "SYSTEM_ADMIN",
        "System Administration",
        "Full back-office access",
        PermissionCategory.SYSTEM,
    ),
]


PERMISSION_DEFINITIONS = (
    WARRANTY_PERMISSIONS
    + DEALER_PERMISSIONS
    + NOTIFICATION_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
