"""Utility helpers for scheck."""
