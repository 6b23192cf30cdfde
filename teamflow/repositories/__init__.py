# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""In-memory stand-ins for the external stores."""
from teamflow.repositories.record_repository import InMemoryRecordRepository
from teamflow.repositories.blob_repository import InMemoryBlobRepository

__all__ = ["InMemoryRecordRepository", "InMemoryBlobRepository"]
