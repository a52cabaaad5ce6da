"""Infrastructure layer: Redis client, lease stores and logging."""
