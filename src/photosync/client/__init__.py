"""PhotoSync client - HTTP client, push workflow and CLI."""
