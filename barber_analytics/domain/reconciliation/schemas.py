"""Reconciliation schemas - Pydantic models for request and response bodies"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel

from ...shared.schemas import Pagination


class ConfirmMatch(BaseModel):
    statement_id: Optional[str] = None
    expense_id: Optional[str] = None
    adjustment: Optional[Union[float, str]] = None
    notes: Optional[str] = None


class MatchCandidate(BaseModel):
    statement_id: str
    entry_id: str
    entry_type: str
    confidence: float
    confidence_level: str
    auto_matched: bool
    scores: dict[str, float]
    details: dict[str, Optional[Union[bool, float, int]]]
    explanation: str


class StatementMatches(BaseModel):
    statement_id: str
    matches: list[MatchCandidate]
    best_match: Optional[MatchCandidate] = None
    auto_matched: bool


class MatchStatistics(BaseModel):
    total_statements: int
    total_entries: int
    total_matches: int
    auto_matches: int
    confidence_distribution: dict[str, int]
    average_confidence: float
    match_rate: float
    auto_match_rate: float


class MatchSuggestions(BaseModel):
    matches: list[StatementMatches]
    statistics: MatchStatistics


class ReconciliationResponse(BaseModel):
    id: str
    unit_id: str
    bank_statement_id: str
    reference_type: str
    reference_id: str
    status: str
    status_label: str
    difference: float
    difference_formatted: str
    confidence: Optional[float] = None
    is_auto: bool
    notes: Optional[str] = None
    reconciled_by: Optional[str] = None
    statement_description: Optional[str] = None
    statement_amount: Optional[float] = None
    statement_date: Optional[str] = None
    created_at: Optional[datetime] = None


class AutoReconcileSummary(BaseModel):
    reconciled: int
    pending: int
    reconciliations: list[ReconciliationResponse]
    errors: list[str]


class ReconciliationStatistics(BaseModel):
    total_statements: int
    total_reconciled: int
    total_pending: int
    reconciliation_percentage: int
    total_amount: float
    reconciled_amount: float
    pending_amount: float
    divergent_count: int
    divergent_amount: float


class MatchSuggestionsEnvelope(BaseModel):
    data: MatchSuggestions


class ReconciliationEnvelope(BaseModel):
    data: ReconciliationResponse


class ReconciliationPageEnvelope(BaseModel):
    data: list[ReconciliationResponse]
    pagination: Pagination


class AutoReconcileEnvelope(BaseModel):
    data: AutoReconcileSummary


class ReconciliationStatisticsEnvelope(BaseModel):
    data: ReconciliationStatistics
