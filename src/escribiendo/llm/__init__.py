"""LLM client and language services."""
