"""Usage quota service."""
