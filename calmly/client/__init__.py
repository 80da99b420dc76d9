"""Conversation client with local optimistic view."""
