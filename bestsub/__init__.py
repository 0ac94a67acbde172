"""Fetch proxy subscriptions, parse share links, check proxies and save results."""

__version__ = "0.1.0"