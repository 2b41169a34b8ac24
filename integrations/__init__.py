"""Provider integrations (messaging, payments)."""
