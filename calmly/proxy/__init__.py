"""Edge proxy tier between clients and the backend."""
