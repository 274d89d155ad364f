"""Utility helpers for cesval."""
