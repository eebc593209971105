"""
Domain layer for the pipe yard workflow engine.
Contains business rules, state machines, policies and the transaction
coordinator, separated from data persistence concerns.
"""
