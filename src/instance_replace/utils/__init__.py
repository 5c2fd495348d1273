"""Utility helpers for configuration, client construction and display."""
