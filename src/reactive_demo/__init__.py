"""
Demo Entity service - reactive CRUD API over PostgreSQL
"""

__version__ = "1.0.0"
