"""
FoundIt lost-and-found backend.

Founders post found items with verification questions, seekers answer them to
claim ownership, and founders pick the winning claim. The package provides a
FastAPI application over a relational store and an object store, each with an
in-memory implementation for development and tests.
"""
