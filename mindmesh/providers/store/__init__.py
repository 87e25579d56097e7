"""Datastore adapters implementing IDocumentStore and IChatStore."""
