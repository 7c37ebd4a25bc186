"""Membership grace period lifecycle service."""
