"""HTTP entry layer."""
