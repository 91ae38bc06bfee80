"""SQLite persistence for task metadata."""
