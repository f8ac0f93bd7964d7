"""Storage and job services for media-gc."""
