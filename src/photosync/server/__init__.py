"""PhotoSync server - sync protocol core and HTTP surface."""
