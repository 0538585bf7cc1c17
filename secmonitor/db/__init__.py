"""Persistence: async engine and ORM models."""
