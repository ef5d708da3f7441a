"""Prompt templates and their registry."""
