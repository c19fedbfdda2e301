"""HTTP daemon API."""
