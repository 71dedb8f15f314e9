"""Concrete collaborators for the diff view core."""
