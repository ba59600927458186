"""Business logic for the storefront service."""
