from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from ..constants import (
    ADULT_AGE,
    CAQ_WINDOW_LEAD_MONTHS,
    CAQ_WINDOW_TAIL_MONTHS,
    FINANCIAL_THRESHOLDS,
    GPI_SIGNATURES,
    MIFI_FINANCE_COUNTRIES,
    MIN_PROGRAM_MONTHS,
    OTHER_TERRITORY,
    RIQ_ART_3,
    RIQ_ART_11,
    RIQ_ART_13,
    RIQ_ART_14,
    RIQ_ART_15,
    SINGLE_ADULT_THRESHOLD,
    FinanceMode,
    MinorSituation,
    PassportState,
    PayerType,
    Recommendation,
    Severity,
    Status,
    StudyLevel,
)
from ..dates import add_months, months_between, years_between
from ..schemas import (
    ApplicantProfile,
    ChecklistItem,
    DossierAnalysisResult,
    DossierSummary,
    MinorFile,
    RenewalHistory,
)
from ..utils.text import fold


@dataclass(slots=True)
class ApplicantContext:
    """Facts derived once from the profile and the evaluation date."""

    age: int | None
    is_adult: bool
    is_emancipated: bool
    is_primary: bool
    is_university: bool
    minor: MinorFile


def _ok_or_missing(present: bool) -> Status:
    return Status.OK if present else Status.MISSING


def build_context(profile: ApplicantProfile, today: date) -> ApplicantContext:
    age = years_between(profile.date_of_birth, today) if profile.date_of_birth else None
    if profile.is_minor_category:
        is_adult = False
    else:
        is_adult = age >= ADULT_AGE if age is not None else True
    minor = profile.minor or MinorFile()
    minor_age = None if is_adult else age
    return ApplicantContext(
        age=age,
        is_adult=is_adult,
        is_emancipated=minor.situation is MinorSituation.EMANCIPATED or minor_age == ADULT_AGE,
        is_primary=profile.study_level is StudyLevel.PRIMARY,
        is_university=profile.study_level is StudyLevel.UNIVERSITY,
        minor=minor,
    )


def check_primary_exemption(ctx: ApplicantContext) -> list[ChecklistItem]:
    if not ctx.is_primary:
        return []
    return [
        ChecklistItem(
            label="CAQ exemption (primary level)",
            status=Status.OK,
            severity=Severity.MINOR,
            legal_reference=RIQ_ART_3,
            note=(
                "A minor already in Quebec whose parent is a temporary worker or foreign student "
                "does not need a CAQ for primary or secondary school."
            ),
        )
    ]


def check_passport(profile: ApplicantProfile, ctx: ApplicantContext) -> ChecklistItem:
    status = Status.OK
    note = ""
    if profile.passport_state is PassportState.ABSENT:
        status = Status.MISSING
        note = "Passport missing."
    elif profile.passport_state is PassportState.EXPIRED:
        status = Status.EXPIRED
        note = "Passport is expired or non-conforming."
    elif ctx.is_adult and not profile.passport_signed:
        status = Status.INCONSISTENT
        note = "Unsigned passport: must supply a signed passport or another official photo ID bearing a signature."
    return ChecklistItem(
        label="Passport and signature",
        status=status,
        severity=Severity.BLOCKING,
        legal_reference=RIQ_ART_13,
        note=note,
    )


def check_declaration_forms(profile: ApplicantProfile) -> ChecklistItem:
    return ChecklistItem(
        label="Declaration and engagement forms",
        status=_ok_or_missing(profile.documents.form_declaration),
        severity=Severity.BLOCKING,
        legal_reference=RIQ_ART_13,
    )


def check_admission_letter(profile: ApplicantProfile, ctx: ApplicantContext) -> ChecklistItem:
    tolerated = ctx.is_primary or profile.is_minor_category
    if profile.documents.admission_letter or tolerated:
        status = Status.OK
    else:
        status = Status.MISSING
    if tolerated:
        note = (
            "Not required for children under 16 in primary or secondary school when a parent "
            "holds status; otherwise it must be supplied."
        )
    else:
        note = (
            "Must state the program, diploma, start and end dates, credits or hours, internship "
            "(under 50% of the duration), admission conditions and tuition amount."
        )
    return ChecklistItem(
        label="Admission letter or attendance certificate",
        status=status,
        severity=Severity.BLOCKING,
        legal_reference=RIQ_ART_13,
        note=note,
    )


def check_renewal(profile: ApplicantProfile) -> list[ChecklistItem]:
    if not profile.is_renewal:
        return []
    documents = profile.documents
    history = profile.renewal or RenewalHistory()
    items: list[ChecklistItem] = []

    if documents.transcripts:
        transcripts_status = Status.OK
    elif documents.explanatory_letter:
        transcripts_status = Status.INCONSISTENT
    else:
        transcripts_status = Status.MISSING
    items.append(
        ChecklistItem(
            label="Official transcripts",
            status=transcripts_status,
            severity=Severity.MAJOR,
            legal_reference=RIQ_ART_11,
            note="Explanatory letter supplied instead." if transcripts_status is Status.INCONSISTENT else "",
        )
    )

    if documents.explanatory_letter:
        items.append(
            ChecklistItem(
                label="Full-time justification / official documents",
                status=_ok_or_missing(documents.full_time_justification),
                severity=Severity.MINOR,
                legal_reference=RIQ_ART_11,
                note="Seal and registrar signature, passport stamps or a medical certificate required.",
            )
        )

    previous = (
        history.previous_caq_start,
        history.previous_caq_end,
        history.previous_study_start,
        history.previous_study_end,
    )
    if all(previous):
        caq_start, caq_end, study_start, study_end = previous
        covered = caq_start <= study_start and caq_end >= study_end
        items.append(
            ChecklistItem(
                label="Previous CAQ / previous studies continuity",
                status=Status.OK if covered else Status.MISSING,
                severity=Severity.MAJOR,
                legal_reference=RIQ_ART_11,
                note=(
                    "Continuity verified."
                    if covered
                    else "The previous CAQ period does not fully cover the declared studies."
                ),
            )
        )

    if history.country_entry_date and profile.program_start:
        entry_valid = history.country_entry_date <= profile.program_start
        items.append(
            ChecklistItem(
                label="Entry date vs program start",
                status=Status.OK if entry_valid else Status.INCONSISTENT,
                severity=Severity.MINOR,
                legal_reference=RIQ_ART_11,
                note="" if entry_valid else "The declared entry date is after the start of classes.",
            )
        )

    if history.is_new_program:
        items.append(
            ChecklistItem(
                label="Profile: new program",
                status=Status.OK,
                severity=Severity.MINOR,
                note="The applicant is starting a new program.",
            )
        )
    return items


def _signature_reminder(profile: ApplicantProfile) -> ChecklistItem:
    signed = profile.documents.form_declaration and profile.documents.admission_letter
    return ChecklistItem(
        label="Signed forms (handwritten or scanned)",
        status=_ok_or_missing(signed),
        severity=Severity.MINOR,
        legal_reference=GPI_SIGNATURES,
        note="Typed signatures are rejected. A handwritten (stylus or mouse) or scanned signature is mandatory.",
    )


def check_minor_documents(profile: ApplicantProfile, ctx: ApplicantContext) -> list[ChecklistItem]:
    if ctx.is_adult or ctx.is_emancipated:
        return []
    minor = ctx.minor
    items = [
        ChecklistItem(
            label="Birth certificate (parents' names required)",
            status=_ok_or_missing(minor.birth_certificate),
            severity=Severity.BLOCKING,
            legal_reference=RIQ_ART_13,
        ),
        ChecklistItem(
            label="Identity of both parents (passport or national ID)",
            status=_ok_or_missing(minor.parents_identity),
            severity=Severity.BLOCKING,
            legal_reference=RIQ_ART_13,
        ),
    ]

    if minor.situation is MinorSituation.BOTH_PARENTS:
        items.append(
            ChecklistItem(
                label="Parents' length of stay (permit or admission)",
                status=_ok_or_missing(minor.accompanying_parents_status),
                severity=Severity.MAJOR,
                legal_reference=RIQ_ART_13,
                note="Sets the validity of the child's CAQ. Both parents accompany the child.",
            )
        )

    if minor.situation is MinorSituation.ONE_PARENT:
        items.append(
            ChecklistItem(
                label="Identity of the non-accompanying parent",
                status=_ok_or_missing(minor.non_accompanying_parent_identity),
                severity=Severity.BLOCKING,
                legal_reference=RIQ_ART_13,
            )
        )
        if minor.sole_custody_proof:
            note = "Satisfied by proof of sole custody."
        elif minor.consent_declaration:
            note = "Satisfied by the non-accompanying parent's consent declaration."
        else:
            note = "Consent is required unless the accompanying parent has sole custody."
        items.append(
            ChecklistItem(
                label="Consent OR proof of sole custody",
                status=_ok_or_missing(minor.consent_declaration or minor.sole_custody_proof),
                severity=Severity.BLOCKING,
                legal_reference=RIQ_ART_13,
                note=note,
            )
        )

    items.append(_signature_reminder(profile))

    if minor.situation is MinorSituation.UNACCOMPANIED:
        items.extend(
            [
                ChecklistItem(
                    label="Delegation of parental authority (each parent)",
                    status=_ok_or_missing(minor.parental_authority_delegation),
                    severity=Severity.BLOCKING,
                    legal_reference=RIQ_ART_13,
                    note="Unaccompanied child: a formal delegation from each parent is required.",
                ),
                ChecklistItem(
                    label="Custody by an adult in Quebec",
                    status=_ok_or_missing(minor.custody_declaration),
                    severity=Severity.BLOCKING,
                    legal_reference=RIQ_ART_14,
                ),
                ChecklistItem(
                    label="Responsible adult's status (citizen or permanent resident)",
                    status=_ok_or_missing(minor.citizenship_proof),
                    severity=Severity.MAJOR,
                    legal_reference=RIQ_ART_14,
                ),
                ChecklistItem(
                    label="Responsible adult's identity",
                    status=_ok_or_missing(minor.responsible_adult_identity),
                    severity=Severity.BLOCKING,
                    legal_reference=RIQ_ART_14,
                ),
                ChecklistItem(
                    label="Responsible adult's proof of residence",
                    status=_ok_or_missing(minor.residence_proof),
                    severity=Severity.MAJOR,
                    legal_reference=RIQ_ART_14,
                ),
                ChecklistItem(
                    label="No criminal record (every adult in the household)",
                    status=_ok_or_missing(minor.criminal_record_check),
                    severity=Severity.BLOCKING,
                    legal_reference=RIQ_ART_14,
                    note="A police report is required for each adult living in the home.",
                ),
            ]
        )
    return items


def check_emancipation(ctx: ApplicantContext) -> list[ChecklistItem]:
    if ctx.minor.situation is not MinorSituation.EMANCIPATED:
        return []
    return [
        ChecklistItem(
            label="Emancipation judgment",
            status=_ok_or_missing(ctx.minor.emancipation_judgment),
            severity=Severity.BLOCKING,
            legal_reference=RIQ_ART_13,
            note="Required for emancipated minors aged 16 and under.",
        )
    ]


def check_program_duration(profile: ApplicantProfile) -> ChecklistItem:
    months = 0
    if profile.program_start and profile.program_end:
        months = months_between(profile.program_start, profile.program_end)
    too_short = months < MIN_PROGRAM_MONTHS
    return ChecklistItem(
        label=f"Program duration (at least {MIN_PROGRAM_MONTHS} months)",
        status=Status.INCONSISTENT if too_short else Status.OK,
        severity=Severity.BLOCKING,
        legal_reference=RIQ_ART_11,
        note=f"The program must last at least {MIN_PROGRAM_MONTHS} months." if too_short else "",
    )


def check_insurance(profile: ApplicantProfile, ctx: ApplicantContext) -> list[ChecklistItem]:
    if ctx.is_university:
        return [
            ChecklistItem(
                label="Health insurance (university)",
                status=Status.OK,
                severity=Severity.MINOR,
                legal_reference=RIQ_ART_15,
                note="Deemed included by the institution.",
            )
        ]
    items: list[ChecklistItem] = []
    if profile.is_renewal:
        has_past = bool(profile.documents.past_insurances)
        items.append(
            ChecklistItem(
                label="Past insurance (continuous coverage)",
                status=_ok_or_missing(has_past),
                severity=Severity.MAJOR,
                legal_reference=RIQ_ART_15,
                note=(
                    "Periods declared."
                    if has_past
                    else "Renewal: prove insurance was maintained for the whole previous stay."
                ),
            )
        )
    has_future = bool(profile.documents.future_insurances)
    items.append(
        ChecklistItem(
            label="Future insurance",
            status=_ok_or_missing(has_future),
            severity=Severity.MAJOR,
            legal_reference=RIQ_ART_15,
            note="" if has_future else "Required at the collegial, professional and primary levels.",
        )
    )
    return items


def is_mifi_finance_country(country: str, finance_countries: Iterable[str]) -> bool:
    target = fold(country)
    if not target:
        return False
    return any(fold(candidate) == target for candidate in finance_countries)


def check_finances(
    profile: ApplicantProfile,
    ctx: ApplicantContext,
    finance_countries: Iterable[str],
) -> ChecklistItem:
    finances = profile.finances
    status = Status.OK
    note = ""

    if profile.finance_exempt:
        note = "Finance-exempt dossier: financial capacity is not assessed."
    elif not is_mifi_finance_country(profile.country_of_residence, finance_countries) and (
        profile.country_of_residence.strip() != OTHER_TERRITORY
    ):
        note = (
            "For this territory MIFI does not verify financial capacity at the CAQ stage; "
            "it is verified federally by the Canadian visa office (IRCC)."
        )
    else:
        if finances.payer_type is PayerType.GUARANTOR:
            if not finances.support_form or not finances.guarantor_finance_proof:
                status = Status.MISSING
                note = "Guarantor: support form or financial proof missing."
        elif not finances.self_finance_proof:
            status = Status.MISSING
            note = "Applicant: recent proof of funds missing."
        elif not finances.bank_statements_6_months:
            status = Status.MISSING
            note = "Bank statements for the last 6 months required (transactions, balance and ownership)."

        if status is Status.OK:
            if finances.mode is FinanceMode.DECLARED:
                if not finances.financial_proof:
                    status = Status.MISSING
                    note = "Declared mode: proof of the declared funds is required."
            else:
                threshold = FINANCIAL_THRESHOLDS.get(profile.study_level, SINGLE_ADULT_THRESHOLD)
                if finances.available_funds < threshold:
                    shortfall = threshold - finances.available_funds
                    status = Status.INSUFFICIENT
                    note = (
                        f"Funds ({finances.available_funds:,.0f}$) below threshold ({threshold:,}$): "
                        f"shortfall of {shortfall:,.0f}$."
                    )

    return ChecklistItem(
        label="Financial capacity",
        status=status,
        severity=Severity.MAJOR if ctx.is_adult else Severity.BLOCKING,
        legal_reference=RIQ_ART_14,
        note=note,
    )


def derive_recommendation(controls: list[ChecklistItem]) -> Recommendation:
    if any(c.severity is Severity.BLOCKING and c.is_violation for c in controls):
        return Recommendation.HIGH_RISK
    if any(c.severity is Severity.MAJOR and c.is_violation for c in controls):
        return Recommendation.NEEDS_COMPLETION
    return Recommendation.ACCEPTABLE


def _passport_label(item: ChecklistItem) -> str:
    if item.status is Status.OK:
        return "Valid"
    if item.status is Status.EXPIRED:
        return "Expired / non-conforming"
    if item.status is Status.INCONSISTENT:
        return "Unsigned"
    return "Absent"


def evaluate_dossier(
    profile: ApplicantProfile,
    today: date | None = None,
    finance_countries: Iterable[str] | None = None,
) -> DossierAnalysisResult:
    current = today or date.today()
    countries = tuple(finance_countries) if finance_countries is not None else MIFI_FINANCE_COUNTRIES
    ctx = build_context(profile, current)

    controls: list[ChecklistItem] = []
    controls.extend(check_primary_exemption(ctx))
    passport = check_passport(profile, ctx)
    controls.append(passport)
    controls.append(check_declaration_forms(profile))
    controls.append(check_admission_letter(profile, ctx))
    controls.extend(check_renewal(profile))
    controls.extend(check_minor_documents(profile, ctx))
    controls.extend(check_emancipation(ctx))
    controls.append(check_program_duration(profile))
    controls.extend(check_insurance(profile, ctx))
    controls.append(check_finances(profile, ctx, countries))

    blocking = [c for c in controls if c.severity is Severity.BLOCKING and c.is_violation]
    major = [c for c in controls if c.severity is Severity.MAJOR and c.is_violation]

    window_start = (
        add_months(profile.program_start, -CAQ_WINDOW_LEAD_MONTHS) if profile.program_start else None
    )
    window_end = add_months(profile.program_end, CAQ_WINDOW_TAIL_MONTHS) if profile.program_end else None

    return DossierAnalysisResult(
        controls=controls,
        recommendation=derive_recommendation(controls),
        caq_window_start=window_start,
        caq_window_end=window_end,
        summary=DossierSummary(
            blocking_count=len(blocking),
            major_count=len(major),
            total_controls=len(controls),
            profile_label="Adult" if ctx.is_adult else "Minor applicant",
            level_label=profile.study_level.value,
            type_label=profile.application_type.value,
            passport_label=_passport_label(passport),
        ),
        is_adult=ctx.is_adult,
    )
