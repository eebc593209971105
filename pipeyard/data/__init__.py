"""
Data layer: SQLAlchemy models only (columns, constraints, relationships).

Business rules live in pipeyard.buisness; nothing here commits a session.
"""
