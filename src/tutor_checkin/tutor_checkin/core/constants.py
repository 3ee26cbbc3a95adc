"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_TIMEZONE = "Australia/Hobart"
DEFAULT_CENTRE_NAME = "Kumon"

DUPLICATE_SCAN_WINDOW_MINUTES = 2

DEFAULT_RECENT_SCANS = 40
MAX_RECENT_SCANS = 100

PURGE_CUTOFF_MONTHS = 12

PASSWORD_MIN_LENGTH = 6
NAME_MAX_LENGTH = 100

DEFAULT_RELATIONSHIP = "GUARDIAN"

PREVIEW_FALLBACK_TEMPLATE = "{student.fullName} has checked in at {time} on {date}."
SEND_FALLBACK_TEMPLATE = "{student.fullName} has an update at {time} on {date}."

SETTING_CENTRE_PROFILE = "center.profile"
SETTING_SMS_POLICY = "sms.policy"

QR_PAYLOAD_VERSION = 1
