from __future__ import annotations

# rearm CLI calls (each one is a round trip to the registry)
REGISTRY_TIMEOUT_SECONDS = 5 * 60.0

# Idempotent registry read retry policy (getlatestrelease, syncbranches)
REGISTRY_READ_RETRY_ATTEMPTS = 3
REGISTRY_READ_RETRY_DELAY_SECONDS = 1.0

# CLI archive and digest list downloads
HTTP_TIMEOUT_SECONDS = 60.0
