"""Shared helpers for ms-graph-devtools."""
