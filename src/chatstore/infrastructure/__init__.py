"""Infrastructure layer: adapters that implement application ports.

This layer bridges the application's port interfaces to concrete
storage engines (SQLite today).
"""
