"""Utilities package - texts, keyboards, callback payloads and handler helpers."""
