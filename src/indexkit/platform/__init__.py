"""indexkit platform - configuration and logging."""
