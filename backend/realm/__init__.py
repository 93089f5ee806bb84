"""
Realm combat backend.
"""
