"""Ingestion pipeline: extract -> analyze -> chunk -> embed -> store -> persist."""
