"""
Database Module - SQLAlchemy persistence for objects, mastery and usage spaces.
"""
