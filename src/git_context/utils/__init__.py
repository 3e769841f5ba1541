"""Sentinel, identity and path helpers."""
