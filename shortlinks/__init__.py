"""Short link service: creation, cached resolution, visit accounting and lifecycle management."""
