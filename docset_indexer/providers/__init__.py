"""Concrete tokenizer, embedding and storage implementations."""
