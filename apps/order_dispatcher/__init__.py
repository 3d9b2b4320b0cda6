"""
Order Dispatcher - continuous multi-broker order submission.

Sends a configured list of orders to a broker's order API in batches:
1. Load config_<broker>.json and build an immutable session
2. Send every order of a batch concurrently
3. Wait the batch delay (or the failure backoff) and repeat
4. Stop on SIGINT/SIGTERM, or after one batch in test mode

Architecture:
    main → Orchestrator → DispatchLoop (one per broker)
                            ↓
                          BrokerAdapter → HttpTransport → broker API
"""

__version__ = "0.1.0"
