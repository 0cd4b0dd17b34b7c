"""
Tests for source resolution and qualification.
"""
