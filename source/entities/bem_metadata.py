"""Metadata of the BEM tables."""
from sqlalchemy import MetaData

bem_metadata = MetaData()
