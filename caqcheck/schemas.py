from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from .constants import (
    ApplicationType,
    DossierCategory,
    EventCategory,
    EventKind,
    FinanceMode,
    FindingGroup,
    FindingSeverity,
    GlobalStatus,
    MinorSituation,
    PassportState,
    PayerType,
    Recommendation,
    Severity,
    Status,
    StudyLevel,
)

# --- Applicant profile -------------------------------------------------------


@dataclass(slots=True, frozen=True)
class InsurancePeriod:
    start: date | None = None
    end: date | None = None


@dataclass(slots=True, frozen=True)
class DocumentSet:
    form_declaration: bool = False
    admission_letter: bool = False
    transcripts: bool = False
    explanatory_letter: bool = False
    full_time_justification: bool = False
    photo: bool = False
    payment_proof: bool = False
    past_insurances: tuple[InsurancePeriod, ...] = ()
    future_insurances: tuple[InsurancePeriod, ...] = ()


@dataclass(slots=True, frozen=True)
class Finances:
    payer_type: PayerType = PayerType.SELF
    mode: FinanceMode = FinanceMode.CALCULATED
    available_funds: float = 0.0
    self_finance_proof: bool = False
    bank_statements_6_months: bool = False
    support_form: bool = False
    guarantor_finance_proof: bool = False
    financial_proof: bool = False


@dataclass(slots=True, frozen=True)
class RenewalHistory:
    previous_caq_start: date | None = None
    previous_caq_end: date | None = None
    previous_study_start: date | None = None
    previous_study_end: date | None = None
    country_entry_date: date | None = None
    is_new_program: bool = False


@dataclass(slots=True, frozen=True)
class MinorFile:
    situation: MinorSituation | None = None
    birth_certificate: bool = False
    parents_identity: bool = False
    accompanying_parents_status: bool = False
    non_accompanying_parent_identity: bool = False
    consent_declaration: bool = False
    sole_custody_proof: bool = False
    parental_authority_delegation: bool = False
    custody_declaration: bool = False
    citizenship_proof: bool = False
    responsible_adult_identity: bool = False
    residence_proof: bool = False
    criminal_record_check: bool = False
    emancipation_judgment: bool = False


@dataclass(slots=True, frozen=True)
class ApplicantProfile:
    dossier_category: DossierCategory
    study_level: StudyLevel
    date_of_birth: date | None = None
    country_of_residence: str = ""
    passport_state: PassportState = PassportState.ABSENT
    passport_signed: bool = False
    program_start: date | None = None
    program_end: date | None = None
    documents: DocumentSet = field(default_factory=DocumentSet)
    finances: Finances = field(default_factory=Finances)
    renewal: RenewalHistory | None = None
    minor: MinorFile | None = None

    @property
    def application_type(self) -> ApplicationType:
        return self.dossier_category.application_type

    @property
    def is_renewal(self) -> bool:
        return self.application_type is ApplicationType.RENEWAL

    @property
    def finance_exempt(self) -> bool:
        return self.dossier_category.finance_exempt

    @property
    def is_minor_category(self) -> bool:
        return self.dossier_category.is_minor


# --- Dossier results ---------------------------------------------------------


@dataclass(slots=True)
class ChecklistItem:
    label: str
    status: Status
    severity: Severity
    legal_reference: str | None = None
    note: str = ""

    @property
    def is_violation(self) -> bool:
        return self.status is not Status.OK


@dataclass(slots=True)
class DossierSummary:
    blocking_count: int
    major_count: int
    total_controls: int
    profile_label: str
    level_label: str
    type_label: str
    passport_label: str


@dataclass(slots=True)
class DossierAnalysisResult:
    controls: list[ChecklistItem]
    recommendation: Recommendation
    caq_window_start: date | None
    caq_window_end: date | None
    summary: DossierSummary
    is_adult: bool

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


# --- Timeline ----------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class TimelineEvent:
    id: str
    kind: EventKind
    category: EventCategory
    submission_date: date | None = None
    start: date | None = None
    end: date | None = None
    label: str | None = None
    linked_program: str | None = None
    level: str | None = None
    is_outside_canada: bool = False
    note: str | None = None

    @property
    def anchor(self) -> date | None:
        return self.submission_date or self.start

    @property
    def is_ranged(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def is_pending(self) -> bool:
        return self.submission_date is not None and self.start is None


@dataclass(slots=True)
class Finding:
    severity: FindingSeverity
    message: str
    date: date | None = None


@dataclass(slots=True)
class ScoredFinding:
    finding: Finding
    penalty: int = 0
    group: FindingGroup = FindingGroup.CONTROLS


@dataclass(slots=True)
class TimelineAnalysisResult:
    score: int
    global_status: GlobalStatus
    controls: list[Finding] = field(default_factory=list)
    insurance_issues: list[Finding] = field(default_factory=list)
    succession_issues: list[Finding] = field(default_factory=list)
    all_alerts: list[Finding] = field(default_factory=list)
    is_empty: bool = False

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value
