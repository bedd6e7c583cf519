"""Database layer: declarative base, engine/session helpers and gateways."""
