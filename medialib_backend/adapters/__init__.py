"""Adapters for the external collaborators: blob storage and tree crawlers."""
