"""Learning material ingestion pipeline.

This package normalizes PDFs, YouTube videos and pasted text into plain text,
splits it into retrievable chunks, embeds the chunks and stores the result
for retrieval.
"""
