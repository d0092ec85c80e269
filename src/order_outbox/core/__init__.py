"""
Order/outbox core: aggregates, persistence, use cases and the outbox
dispatcher.
"""
