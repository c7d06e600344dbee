"""Insiders release pipeline: steps, cache, versioning and dispatch."""
