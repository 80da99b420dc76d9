"""Session/history persistence, assistant bridge and backend routes."""
