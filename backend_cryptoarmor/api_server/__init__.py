"""
API server package — HTTP/REST interface.

Exposes address and transaction assessments, the action gateway, network
health, and the fixture table. Delegates to analytics and the chain client.
"""
