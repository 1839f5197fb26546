"""Utility helpers for the storefront backend."""
