from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SubmissionStatus: TypeAlias = Literal["pending", "approved", "rejected"]
ArticleStatus: TypeAlias = Literal["draft", "published", "archived", "under-review"]
ArticleType: TypeAlias = Literal["article", "journal", "research", "review", "case-study"]
ExportFormat: TypeAlias = Literal["json", "csv"]


class CamelModel(BaseModel):
    """Base model exchanging camelCase keys with API callers and the store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_changes(self) -> dict[str, Any]:
        """Only the fields the caller actually sent, for partial updates."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class RecordMetadata(CamelModel):
    """Provenance block attached to every record"""

    source: str = Field(default="manual_entry", description="Where the record came from")
    date_added: str | None = None
    last_updated: str | None = None
    verified: bool = False
    data_version: str = "1.0"


class RecordFields(CamelModel):
    """Descriptive fields shared by records and submissions"""

    disease: str | None = None
    database_accession_numbers: str | None = None
    autoantibody: str | None = None
    synonym: str | None = None
    disease_association: str | None = None
    autoantigen: str | None = None
    epitope: str | None = None
    epitope_prevalence: str | float | None = None
    uniprot_id: str | None = None
    screening: str | None = None
    confirmation: str | None = None
    monitoring: str | None = None
    affinity: str | None = None
    avidity: str | None = None
    mechanism: str | None = None
    isotype_subclasses: str | None = None
    sensitivity: str | None = None
    diagnostic_marker: str | None = None
    association_with_disease_activity: str | None = None
    positive_predictive_values: str | None = None
    negative_predictive_values: str | None = None
    cross_reactivity_patterns: str | None = None
    pathogenesis_involvement: str | None = None
    reference_ranges_and_cutoff_values: str | None = None
    reference: str | None = None
    type: str | None = None
    priority: str | int | float | None = Field(
        default=None, description="Editorial ranking weight; higher ranks first"
    )
    additional: dict[str, str] | None = Field(
        default=None, description="Unmapped import columns keyed by original header"
    )


class RecordCreate(RecordFields):
    metadata: RecordMetadata | None = None


class RecordUpdate(RecordFields):
    pass


class BulkImportRequest(BaseModel):
    entries: list[dict[str, Any]] = Field(default_factory=list)


class RowImportRequest(BaseModel):
    """Already-decoded spreadsheet rows keyed by their original headers"""

    rows: list[dict[str, Any]] = Field(default_factory=list)


class SubmissionCreate(CamelModel):
    disease: str | None = None
    autoantibody: str | None = None
    disease_association: str | None = None
    autoantigen: str | None = None
    epitope: str | None = None
    epitope_prevalence: str | float | None = None
    uniprot_id: str | None = None
    affinity: str | None = None
    avidity: str | None = None
    mechanism: str | None = None
    isotype_subclasses: str | None = None
    sensitivity: str | None = None
    diagnostic_marker: str | None = None
    association_with_disease_activity: str | None = None
    pathogenesis_involvement: str | None = None
    reference: str | None = None
    additional: dict[str, str] | None = None


class ReviewRequest(CamelModel):
    review_note: str | None = None


class BulkNamesRequest(BaseModel):
    names: list[str] | None = None


class ArticleCreate(CamelModel):
    title: str | None = None
    slug: str | None = None
    abstract: str | None = None
    content: str | None = None
    type: ArticleType = "article"
    author: str | None = None
    co_authors: list[str] = Field(default_factory=list)
    status: ArticleStatus = "draft"
    journal_name: str | None = None
    journal_volume: str | None = None
    journal_issue: str | None = None
    doi: str | None = None
    keywords: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    category: str | None = None
    featured_image: str | None = None
    publication_date: str | None = None
    is_featured: bool = False


class ArticleUpdate(CamelModel):
    title: str | None = None
    slug: str | None = None
    abstract: str | None = None
    content: str | None = None
    type: ArticleType | None = None
    author: str | None = None
    co_authors: list[str] | None = None
    status: ArticleStatus | None = None
    journal_name: str | None = None
    journal_volume: str | None = None
    journal_issue: str | None = None
    doi: str | None = None
    keywords: list[str] | None = None
    tags: list[str] | None = None
    category: str | None = None
    featured_image: str | None = None
    publication_date: str | None = None
    is_featured: bool | None = None
