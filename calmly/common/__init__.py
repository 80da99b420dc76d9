"""Shared error taxonomy, envelopes and response normalization."""
