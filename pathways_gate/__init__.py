"""Admission control and response caching for the Ngurra Pathways API."""
