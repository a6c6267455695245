"""Shared outbound HTTP helpers (client, headers, error envelopes)."""
