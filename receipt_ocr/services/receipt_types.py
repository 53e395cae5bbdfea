from typing import Any, Generic, Literal, TypeVar
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")

ExtractionMethod = Literal["direct", "pattern", "fuzzy", "calculated", "inferred", "fallback"]
DocumentType = Literal["receipt", "invoice", "statement", "unknown"]
QualityTier = Literal["excellent", "good", "fair", "poor"]
Severity = Literal["error", "warning", "info"]

# Ceiling for any confidence that leaves the pipeline
MAX_CONFIDENCE = 0.98


def clamp_confidence(value: float, ceiling: float = MAX_CONFIDENCE) -> float:
    return max(0.0, min(float(value), ceiling))


class ExtractedField(BaseModel, Generic[T]):
    """A single extracted value with how sure we are and how we got it."""
    value: T | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    method: ExtractionMethod = "fallback"
    source: str | None = None  # Text the value was read from

    @property
    def found(self) -> bool:
        return self.value is not None and self.value != ""


class LineItem(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    description: str
    quantity: float | None = None
    unit_price: float | None = None
    total_price: float
    confidence: float = 0.0


class FieldConfidence(BaseModel):
    vendor: float = 0.0
    total: float = 0.0
    date: float = 0.0
    line_items: float = 0.0
    document_type: float = 0.0


class ValidationIssue(BaseModel):
    severity: Severity
    field: str
    message: str
    current_value: Any = None
    suggested_value: Any = None
    auto_fixable: bool = False
    rule: str | None = None
    code: str | None = None


class ValidationOutcome(BaseModel):
    passed: bool = True
    confidence: float = 1.0
    needs_manual_review: bool = False
    issues: list[ValidationIssue] = Field(default_factory=list)
    residual_issues: list[ValidationIssue] = Field(default_factory=list)
    fixes_applied: list[str] = Field(default_factory=list)


class ReceiptRecord(BaseModel):
    vendor: str = ""
    total: float | None = None
    subtotal: float | None = None
    tax: float | None = None
    date: str | None = None  # ISO YYYY-MM-DD
    line_items: list[LineItem] = Field(default_factory=list)
    document_type: DocumentType = "unknown"
    confidence: FieldConfidence = Field(default_factory=FieldConfidence)
    overall_confidence: float = 0.0
    extraction_quality: QualityTier = "poor"
    validation: ValidationOutcome | None = None
    extraction_methods: dict[str, str] = Field(default_factory=dict)
    strategy: Literal["llm", "heuristic"] = "heuristic"
