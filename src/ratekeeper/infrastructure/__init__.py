"""Storage and lock backends."""
