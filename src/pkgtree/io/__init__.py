"""Package readers and writers."""
