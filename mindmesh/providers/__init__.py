"""Concrete adapters for the interfaces in :mod:`mindmesh.interfaces`."""
