"""Room directory: create, list and resolve rooms by slug."""
