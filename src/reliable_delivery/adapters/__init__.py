"""Adapters – SQLAlchemy, Redis and FastAPI bindings for the delivery ports."""
