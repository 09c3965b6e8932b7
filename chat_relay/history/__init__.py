"""
User and conversation persistence.

Repositories live in ``chat_relay.history.repositories``; this package keeps
no import side effects so the error classifier can depend on its exceptions.
"""
