"""Canonical data shapes shared by the timeline utilities, passes and CLI."""
