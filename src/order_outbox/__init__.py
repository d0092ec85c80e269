"""
order-outbox

Orders with transactional-outbox event delivery.
"""

__version__ = "0.1.0"
