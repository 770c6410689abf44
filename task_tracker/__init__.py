"""
Task Tracker - a small task CRUD service backed by a relational table.
"""

__version__ = "0.1.0"
