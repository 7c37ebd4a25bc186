"""Application packages for the grace period service."""
