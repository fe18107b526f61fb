"""Best-effort Redis cache-aside layer."""
