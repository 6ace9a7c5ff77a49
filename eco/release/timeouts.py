from __future__ import annotations

# GH / API operations
GH_TIMEOUT_SECONDS = 60.0

# CI wait protocol defaults (overridable from ecosystem.toml [ci])
CI_POLL_INTERVAL_SECONDS = 5.0
CI_DISCOVERY_TIMEOUT_SECONDS = 30 * 60.0
CI_OVERALL_TIMEOUT_SECONDS = 60 * 60.0
CI_PROGRESS_EVERY_ATTEMPTS = 4
