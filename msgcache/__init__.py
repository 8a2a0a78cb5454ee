"""Local SQLite cache for externally sourced bot messages."""
