"""WatchRoom: coordination server for synchronized watch rooms."""
