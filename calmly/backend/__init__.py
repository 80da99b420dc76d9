"""Backend application assembly."""
