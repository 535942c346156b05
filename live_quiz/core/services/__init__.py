"""Core services: one module per session component."""
