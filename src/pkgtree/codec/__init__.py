"""Document encoding."""
