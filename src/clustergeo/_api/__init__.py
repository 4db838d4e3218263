"""Endpoint modules: one per external collaborator."""
