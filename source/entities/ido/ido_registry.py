"""Mapper registry of the read-only IDO schema."""
from sqlalchemy.orm import registry

ido_mapper_registry = registry()
