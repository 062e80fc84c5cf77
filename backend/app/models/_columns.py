"""
Column helpers shared by the ORM tables.
"""

import datetime
import uuid

from sqlalchemy import Column, DateTime, String


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def id_column() -> Column:
    return Column(String(36), primary_key=True, default=new_id)


def created_at_column() -> Column:
    return Column(DateTime(timezone=True), nullable=False, default=utcnow)


def updated_at_column() -> Column:
    return Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
