"""Routing engine: capabilities, ledger, selector, dispatcher, router."""
