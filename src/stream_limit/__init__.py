"""Per-user concurrent stream limit enforcement for Jellyfin."""
