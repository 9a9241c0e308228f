"""
Core utilities — the shared exception hierarchy used by the chain client,
analytics engine and API server.
"""
