"""Core logic for the offline care companion.

This package contains the advisory engine and the local record stores,
isolated from screens, speech and the host platform for easy testing.
"""
