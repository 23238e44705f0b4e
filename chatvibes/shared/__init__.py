"""Shared Firestore models and repositories for the ChatVibes backend."""
