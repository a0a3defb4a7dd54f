"""Lingo Life: a deterministic engine for a language-learning life sim."""
