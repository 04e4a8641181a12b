"""Application services built on the query engine and document store."""

from .articles import ArticleService
from .biomarkers import BiomarkerService
from .records import RecordCatalog
from .submissions import Actor, SubmissionService

__all__ = [
    "Actor",
    "ArticleService",
    "BiomarkerService",
    "RecordCatalog",
    "SubmissionService",
]
