"""Core primitives shared by every tillsync module."""
