"""Background job infrastructure: taskiq broker and APScheduler trigger."""
