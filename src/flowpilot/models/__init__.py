"""Boundary models: records consumed from and produced for the caller's data store."""
