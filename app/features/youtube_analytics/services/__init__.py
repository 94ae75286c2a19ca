"""Services for the YouTube analytics feature."""
