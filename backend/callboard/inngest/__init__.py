"""Background jobs (Inngest)."""
