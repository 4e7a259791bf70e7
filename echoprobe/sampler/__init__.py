"""Per-client sampling sessions."""
