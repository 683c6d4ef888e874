from __future__ import annotations

from enum import Enum


class Status(str, Enum):
    OK = "OK"
    MISSING = "Missing"
    INCONSISTENT = "Inconsistent"
    EXPIRED = "Expired"
    INSUFFICIENT = "Insufficient"


class Severity(str, Enum):
    BLOCKING = "Blocking"
    MAJOR = "Major"
    MINOR = "Minor"


class Recommendation(str, Enum):
    ACCEPTABLE = "Acceptable"
    NEEDS_COMPLETION = "Needs completion"
    HIGH_RISK = "High risk"


class ApplicationType(str, Enum):
    FIRST = "First application"
    RENEWAL = "Renewal"


class StudyLevel(str, Enum):
    PRIMARY = "Primary"
    PROFESSIONAL = "Professional"
    COLLEGIAL = "Collegial"
    UNIVERSITY = "University"


class PassportState(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    ABSENT = "absent"


class PayerType(str, Enum):
    SELF = "self"
    GUARANTOR = "guarantor"


class FinanceMode(str, Enum):
    CALCULATED = "calculated"
    DECLARED = "declared"


class MinorSituation(str, Enum):
    BOTH_PARENTS = "both_parents"
    ONE_PARENT = "one_parent"
    UNACCOMPANIED = "unaccompanied"
    EMANCIPATED = "emancipated"


class DossierCategory(str, Enum):
    MAJ_1_NC = "MAJ_1_NC"
    MAJ_R_NC = "MAJ_R_NC"
    MAJ_1_C = "MAJ_1_C"
    MAJ_R_C = "MAJ_R_C"
    MIN_1_NC = "MIN_1_NC"
    MIN_R_NC = "MIN_R_NC"
    MIN_1_C = "MIN_1_C"
    MIN_R_C = "MIN_R_C"

    @property
    def is_minor(self) -> bool:
        return self.value.startswith("MIN")

    @property
    def application_type(self) -> ApplicationType:
        return ApplicationType.RENEWAL if "_R_" in self.value else ApplicationType.FIRST

    @property
    def finance_exempt(self) -> bool:
        return self.value.endswith("_C")

    @property
    def label(self) -> str:
        return DOSSIER_CATEGORY_LABELS[self]


DOSSIER_CATEGORY_LABELS: dict[DossierCategory, str] = {
    DossierCategory.MAJ_1_NC: "Adult, first application (finances verified)",
    DossierCategory.MAJ_R_NC: "Adult, renewal (finances verified)",
    DossierCategory.MAJ_1_C: "Adult, first application (finance exemption)",
    DossierCategory.MAJ_R_C: "Adult, renewal (finance exemption)",
    DossierCategory.MIN_1_NC: "Minor, first application (finances verified)",
    DossierCategory.MIN_R_NC: "Minor, renewal (finances verified)",
    DossierCategory.MIN_1_C: "Minor, first application (finance exemption)",
    DossierCategory.MIN_R_C: "Minor, renewal (finance exemption)",
}

# Category labels as the intake form submits them.
DOSSIER_CATEGORY_FORM_LABELS: dict[DossierCategory, str] = {
    DossierCategory.MAJ_1_NC: "MAJEUR Première demande (Finance à vérifier)",
    DossierCategory.MAJ_R_NC: "MAJEUR Renouvellement (Finance à vérifier)",
    DossierCategory.MAJ_1_C: "MAJEUR Première demande (Exemption financière)",
    DossierCategory.MAJ_R_C: "MAJEUR Renouvellement (Exemption financière)",
    DossierCategory.MIN_1_NC: "MINEUR Première demande (Finance à vérifier)",
    DossierCategory.MIN_R_NC: "MINEUR Renouvellement (Finance à vérifier)",
    DossierCategory.MIN_1_C: "MINEUR Première demande (Exemption financière)",
    DossierCategory.MIN_R_C: "MINEUR Renouvellement (Exemption financière)",
}

# Quebec treats applicants aged 17 and over under the adult rules.
ADULT_AGE = 17
MIN_PROGRAM_MONTHS = 6
CAQ_WINDOW_LEAD_MONTHS = 1
CAQ_WINDOW_TAIL_MONTHS = 3

# Annual living-cost thresholds (CAD), 2025 figures.
SINGLE_ADULT_THRESHOLD = 15478
MINOR_THRESHOLD = 7739

FINANCIAL_THRESHOLDS: dict[StudyLevel, int] = {
    StudyLevel.PRIMARY: MINOR_THRESHOLD,
    StudyLevel.PROFESSIONAL: SINGLE_ADULT_THRESHOLD,
    StudyLevel.COLLEGIAL: SINGLE_ADULT_THRESHOLD,
    StudyLevel.UNIVERSITY: SINGLE_ADULT_THRESHOLD,
}

OTHER_TERRITORY = "Autre territoire"

# Countries of residence for which MIFI itself verifies financial capacity at the
# CAQ stage. Elsewhere the check happens federally, at the study permit stage.
MIFI_FINANCE_COUNTRIES: tuple[str, ...] = (
    "Algérie",
    "Bénin",
    "Brésil",
    "Burkina Faso",
    "Cameroun",
    "Chine",
    "Colombie",
    "Congo",
    "Côte d'Ivoire",
    "Gabon",
    "Guinée",
    "Haïti",
    "Inde",
    "Iran",
    "Liban",
    "Madagascar",
    "Mali",
    "Maroc",
    "Mexique",
    "Niger",
    "République démocratique du Congo",
    "Sénégal",
    "Togo",
    "Tunisie",
    "Viet Nam",
)

RIQ_ART_3 = "Art. 3 RIQ"
RIQ_ART_11 = "Art. 11 RIQ"
RIQ_ART_13 = "Art. 13 RIQ"
RIQ_ART_14 = "Art. 14 RIQ"
RIQ_ART_15 = "Art. 15 RIQ"
GPI_SIGNATURES = "GPI 3.5"
LIQ_FALSE_OR_MISLEADING = "Art. 56-57 LIQ"
LIQ_CANCELLATION = "LIQ (cancellation of a CAQ)"


class EventKind(str, Enum):
    CAQ = "CAQ"
    CAQ_REFUSAL = "CAQ_REFUSAL"
    INTENT_REFUSAL = "INTENT_REFUSAL"
    INTENT_CANCEL = "INTENT_CANCEL"
    CAQ_CANCEL = "CAQ_CANCEL"
    FRAUD_REJECTION = "FRAUD_REJECTION"
    DOCS_SENT = "DOCS_SENT"
    INTERVIEW = "INTERVIEW"
    ENTRY = "ENTRY"
    EXIT = "EXIT"
    WORK_PERMIT = "WORK_PERMIT"
    STUDIES = "STUDIES"
    INSURANCE = "INSURANCE"
    MEDICAL = "MEDICAL"
    OTHER = "OTHER"

    @property
    def label(self) -> str:
        return EVENT_KIND_LABELS[self]


class EventCategory(str, Enum):
    ADMINISTRATIVE = "Administrative"
    CANDIDATE = "Candidate"


ADMINISTRATIVE_KINDS = frozenset(
    {
        EventKind.CAQ_REFUSAL,
        EventKind.INTENT_REFUSAL,
        EventKind.INTENT_CANCEL,
        EventKind.CAQ_CANCEL,
        EventKind.FRAUD_REJECTION,
        EventKind.INTERVIEW,
    }
)
REFUSAL_KINDS = frozenset({EventKind.CAQ_REFUSAL, EventKind.INTENT_REFUSAL})
# Permits take part in status succession alongside CAQ decisions.
STATUS_KINDS = frozenset(
    {EventKind.CAQ, EventKind.CAQ_REFUSAL, EventKind.INTENT_REFUSAL, EventKind.WORK_PERMIT}
)
PRESENCE_KINDS = frozenset({EventKind.ENTRY, EventKind.STUDIES, EventKind.WORK_PERMIT})

EVENT_KIND_LABELS: dict[EventKind, str] = {
    EventKind.CAQ: "CAQ application / Certificat d'acceptation du Québec",
    EventKind.CAQ_REFUSAL: "CAQ refusal decision",
    EventKind.INTENT_REFUSAL: "Notice of intent to refuse (MIFI)",
    EventKind.INTENT_CANCEL: "Notice of intent to cancel the CAQ",
    EventKind.CAQ_CANCEL: "CAQ cancellation confirmed",
    EventKind.FRAUD_REJECTION: "Rejection for false or misleading information (Art. 56-57 LIQ)",
    EventKind.DOCS_SENT: "File submitted / documents sent to MIFI",
    EventKind.INTERVIEW: "Interview summons",
    EventKind.ENTRY: "Entry into Canada",
    EventKind.EXIT: "Departure from Canada",
    EventKind.WORK_PERMIT: "Work or study permit",
    EventKind.STUDIES: "Active study period",
    EventKind.INSURANCE: "Health/travel insurance coverage",
    EventKind.MEDICAL: "Medical leave or health-related interruption",
    EventKind.OTHER: "Other event",
}

INSURANCE_LABEL_TOKENS = ("assurance", "insurance", "ramq")


class FindingSeverity(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


class GlobalStatus(str, Enum):
    EXEMPLARY = "Exemplary"
    COMPLIANT = "Compliant"
    AT_RISK = "At risk"
    CRITICAL = "Critical"
    NEUTRAL = "Neutral"


class FindingGroup(str, Enum):
    CONTROLS = "controls"
    INSURANCE = "insurance"
    SUCCESSION = "succession"


BASE_SCORE = 100
COMPLIANT_SCORE = 80
AT_RISK_SCORE = 60

EXTENDED_GAP_DAYS = 150
LEVEL_BOUNDARY_TOLERANCE_DAYS = 30
INSURANCE_GAP_TOLERANCE_DAYS = 15
ARRIVAL_DELAY_CRITICAL_MONTHS = 3
ARRIVAL_DELAY_SUSPECT_MONTHS = 1

PENALTY_STATUS_BREAK = 20
PENALTY_REFUSAL_RESOLVED = 2
PENALTY_REFUSAL_PENDING = 5
PENALTY_REFUSAL_UNANSWERED = 25
PENALTY_INTENT_REFUSAL_UNANSWERED = 15
PENALTY_INTENT_CANCEL_UNANSWERED = 30
PENALTY_INTENT_CANCEL_ANSWERED = 10
PENALTY_CAQ_CANCEL = 50
PENALTY_FRAUD_REJECTION = 60
PENALTY_STUDY_UNCOVERED = 5
PENALTY_LEVEL_MISMATCH = 20
PENALTY_LEVEL_BOUNDARY = 5
PENALTY_NO_PERMIT = 15
PENALTY_STUDY_WHILE_ABSENT = 20
PENALTY_GAP_MEDICAL = 5
PENALTY_GAP_UNEXPLAINED = 15
PENALTY_CAQ_WITHOUT_STUDIES = 5
PENALTY_INSURANCE_GAP = 5
PENALTY_INSURANCE_NONE_IN_WINDOW = 15
PENALTY_INSURANCE_NONE_AT_ALL = 10
PENALTY_ARRIVAL_CRITICAL = 15
PENALTY_ARRIVAL_SUSPECT = 5
