from makercost.models.records import ENTITY_TABLES, RecordMixin

__all__ = ["ENTITY_TABLES", "RecordMixin"]
