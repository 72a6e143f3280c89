"""Vehicle service booking backend."""
