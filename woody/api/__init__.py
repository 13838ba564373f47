"""The request-facing HTTP API of woody."""
