"""Cross-cutting framework services (logging)."""
