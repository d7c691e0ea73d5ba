"""Core resilience, detection and connection-state components for signlink."""
