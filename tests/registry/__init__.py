"""
Tests for the artifact registry: stores, link accessors and the registry itself.
"""
