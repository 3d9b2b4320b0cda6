"""
Apps package - runnable services of the dispatcher.

- order_dispatcher: CLI that sends configured orders to broker APIs
"""
