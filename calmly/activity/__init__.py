"""Activity log persistence and completion notifications."""
