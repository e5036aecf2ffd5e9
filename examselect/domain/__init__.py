"""
Domain layer for the selection engine.
"""
