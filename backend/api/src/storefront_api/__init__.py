"""FastAPI application for the storefront backend."""
