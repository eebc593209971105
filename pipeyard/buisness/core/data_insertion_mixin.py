"""
Generic data insertion mixin for SQLAlchemy models
Provides from_dict and to_dict methods used for seeding and for entity snapshots

The workflow engine never persists through these helpers inside an atomic unit;
create_from_dict/find_or_create_from_dict are for build/seed scripts only.
"""

from enum import Enum
from datetime import datetime, date
from sqlalchemy import inspect
from pipeyard import db
from pipeyard.logger import get_logger

logger = get_logger("pipeyard.buisness.core.data_insertion")


class DataInsertionMixin:
    """
    Mixin that provides generic data insertion capabilities for SQLAlchemy models

    This mixin adds:
    - from_dict(): Create model instance from dictionary
    - to_dict(): Convert model instance to dictionary (snapshot)
    - create_from_dict(): Create and save model instance from dictionary
    - find_or_create_from_dict(): Idempotent seeding helper
    """

    @classmethod
    def from_dict(cls, data_dict, operator=None, skip_fields=None):
        """
        Create a model instance from a dictionary

        Args:
            data_dict (dict): Dictionary containing model data
            operator (str, optional): Operator identity for audit fields
            skip_fields (list, optional): Fields to skip during creation

        Returns:
            Model instance (not saved to database)
        """
        if skip_fields is None:
            skip_fields = []

        mapper = inspect(cls)
        columns = {c.key: c for c in mapper.columns}

        filtered_data = {}
        for key, value in data_dict.items():
            if key in columns and key not in skip_fields:
                if key in ['created_at', 'updated_at'] and value is None:
                    continue
                filtered_data[key] = value

        instance = cls(**filtered_data)

        if operator is not None:
            if hasattr(instance, 'created_by') and not instance.created_by:
                instance.created_by = operator
            if hasattr(instance, 'updated_by'):
                instance.updated_by = operator

        return instance

    def to_dict(self, include_audit_fields=True):
        """
        Convert model instance to dictionary

        Args:
            include_audit_fields (bool): Whether to include audit fields

        Returns:
            dict: Dictionary representation of the model
        """
        result = {}
        mapper = inspect(self.__class__)

        for column in mapper.columns:
            value = getattr(self, column.key)

            if not include_audit_fields and column.key in ['created_at', 'updated_at', 'created_by', 'updated_by']:
                continue

            if isinstance(value, (datetime, date)):
                result[column.key] = value.isoformat()
            elif isinstance(value, Enum):
                result[column.key] = value.value
            else:
                result[column.key] = value

        return result

    @classmethod
    def create_from_dict(cls, data_dict, operator=None, skip_fields=None, commit=True):
        """
        Create and save a model instance from dictionary

        Args:
            data_dict (dict): Dictionary containing model data
            operator (str, optional): Operator identity for audit fields
            skip_fields (list, optional): Fields to skip during creation
            commit (bool): Whether to commit the transaction

        Returns:
            Model instance (saved to database)
        """
        instance = cls.from_dict(data_dict, operator, skip_fields)

        try:
            db.session.add(instance)
            if commit:
                db.session.commit()
                logger.info(f"Created {cls.__name__}: {instance}")
            return instance
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating {cls.__name__}: {e}")
            raise

    @classmethod
    def find_or_create_from_dict(cls, data_dict, operator=None, skip_fields=None,
                                 lookup_fields=None, commit=True):
        """
        Find existing instance or create new one from dictionary

        Args:
            data_dict (dict): Dictionary containing model data
            operator (str, optional): Operator identity for audit fields
            skip_fields (list, optional): Fields to skip during creation
            lookup_fields (list, optional): Fields to use for lookup (default: unique fields)
            commit (bool): Whether to commit the transaction

        Returns:
            tuple: (instance, created) where created is boolean
        """
        if lookup_fields is None:
            mapper = inspect(cls)
            lookup_fields = [c.key for c in mapper.columns if c.unique and c.key in data_dict]

        lookup_data = {field: data_dict[field] for field in lookup_fields if field in data_dict}
        if not lookup_data:
            return cls.create_from_dict(data_dict, operator, skip_fields, commit), True

        existing = cls.query.filter_by(**lookup_data).first()
        if existing:
            logger.debug(f"Found existing {cls.__name__}: {existing}")
            return existing, False

        return cls.create_from_dict(data_dict, operator, skip_fields, commit), True
