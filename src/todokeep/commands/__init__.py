"""Command-line commands for todokeep."""
