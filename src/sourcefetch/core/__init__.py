"""Acquisition pipeline core: source model, failures, retry, validation, store."""
