"""HTTP routes for media-gc."""
