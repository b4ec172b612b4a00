"""Domain services: periods, tiers, usage statistics and request limits."""
