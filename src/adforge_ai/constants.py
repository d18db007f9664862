"""Shared constants."""

# Returned by remaining_quota() when a vendor has no meaningful quota concept
QUOTA_UNLIMITED = 9999

# Health probes must fail fast
HEALTH_CHECK_TIMEOUT = 10.0
HEALTH_CHECK_MAX_TOKENS = 10

# Token budgets per operation
ANALYSIS_MAX_TOKENS = 2000
SCRIPT_MAX_TOKENS = 1500
RECOMMENDATIONS_MAX_TOKENS = 2000
CHAT_MAX_TOKENS = 1000

# Assumed input share of a call when the vendor only reports a total
INPUT_TOKEN_SHARE = 0.6
