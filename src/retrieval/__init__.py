"""Retrieval over processed learning material.

Ranks the chunks of a content item against a query by cosine similarity of
embeddings, falling back to keyword counting when embeddings are missing or
unusable.
"""
