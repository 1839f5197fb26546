"""Storefront backend: orders, checkout and payment reconciliation."""
