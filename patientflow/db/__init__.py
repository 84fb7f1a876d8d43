"""
Database package: SQLAlchemy connection, ORM tables and the SQL queue store.
"""
