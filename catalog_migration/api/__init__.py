"""HTTP API for triggering composite product migrations."""
