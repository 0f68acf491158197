"""Slug codec, error classification, retry and taxonomy resolution."""
