"""Core configuration, errors and git plumbing."""
