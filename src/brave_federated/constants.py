"""Centralized constants for the federated learning client."""

# Endpoint
FEDERATED_LEARNING_URL = "https://fl.brave.com/"
OPERATIONAL_PROFILE_HEADER = "X-Brave-FL-Operational-Profile"
OPERATIONAL_PROFILE_HEADER_VALUE = "?1"
REQUEST_TIMEOUT_SECONDS = 30

# Local state pref names
LAST_CHECKED_SLOT_PREF = "brave.federated.last_checked_slot"
COLLECTION_ID_PREF = "brave.federated.collection_id"
COLLECTION_ID_EXPIRATION_PREF = "brave.federated.collection_id_expiration"
P3A_ENABLED_PREF = "brave.p3a.enabled"
ADS_ENABLED_PREF = "brave.brave_ads.enabled"

# Sentinel for "no slot has ever been reported"
NO_SLOT_REPORTED = -1

# Feature defaults
DEFAULT_COLLECTION_SLOT_SIZE_MINUTES = 30
DEFAULT_SIMULATE_LOCAL_TRAINING_STEP_MINUTES = 5
DEFAULT_COLLECTION_ID_LIFETIME_DAYS = 1

MINUTES_PER_DAY = 24 * 60
