"""Infrastructure adapters: logging, database, tasks, metrics, rate limiting."""
