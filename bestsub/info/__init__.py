"""Proxy records, naming and deduplication."""