"""Request payload models.

The intake form posts camelCase keys; the snake_case field names are accepted
as well. A payload is validated once here and converted into the frozen
records of :mod:`caqcheck.schemas`. Unknown enum values are rejected.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import (
    ADMINISTRATIVE_KINDS,
    DOSSIER_CATEGORY_FORM_LABELS,
    INSURANCE_LABEL_TOKENS,
    ApplicationType,
    DossierCategory,
    EventCategory,
    EventKind,
    FinanceMode,
    MinorSituation,
    PassportState,
    PayerType,
    StudyLevel,
)
from .dates import to_date
from .schemas import (
    ApplicantProfile,
    DocumentSet,
    Finances,
    InsurancePeriod,
    MinorFile,
    RenewalHistory,
    TimelineEvent,
)
from .utils.text import fold


def _category_lookup() -> dict[str, DossierCategory]:
    lookup: dict[str, DossierCategory] = {}
    for category in DossierCategory:
        lookup[fold(category.value)] = category
        lookup[fold(category.value.replace("_", " "))] = category
        lookup[fold(category.label)] = category
        lookup[fold(DOSSIER_CATEGORY_FORM_LABELS[category])] = category
    return lookup


_CATEGORIES = _category_lookup()

_STUDY_LEVELS: dict[str, StudyLevel] = {
    "primary": StudyLevel.PRIMARY,
    "primaire": StudyLevel.PRIMARY,
    "secondary": StudyLevel.PRIMARY,
    "secondaire": StudyLevel.PRIMARY,
    "professional": StudyLevel.PROFESSIONAL,
    "professionnel": StudyLevel.PROFESSIONAL,
    "collegial": StudyLevel.COLLEGIAL,
    "university": StudyLevel.UNIVERSITY,
    "universitaire": StudyLevel.UNIVERSITY,
}

_FINANCE_MODES: dict[str, FinanceMode] = {
    "calculated": FinanceMode.CALCULATED,
    "calculate": FinanceMode.CALCULATED,
    "declared": FinanceMode.DECLARED,
    "manual": FinanceMode.DECLARED,
}

_PERMIT_TYPES: dict[str, EventKind] = {
    "permis d'etudes": EventKind.WORK_PERMIT,
    "study permit": EventKind.WORK_PERMIT,
    "study_permit": EventKind.WORK_PERMIT,
}

_EVENT_CATEGORY_CODES = {"ADM": EventCategory.ADMINISTRATIVE, "USR": EventCategory.CANDIDATE}


class _PayloadModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_values(cls, values: Any) -> Any:
        # Form inputs left empty arrive as "" or null; both mean "not provided".
        if isinstance(values, Mapping):
            return {
                key: value
                for key, value in values.items()
                if value is not None and not (isinstance(value, str) and not value.strip())
            }
        return values


class InsurancePeriodIn(_PayloadModel):
    start: date | None = None
    end: date | None = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def _read_date(cls, value: Any) -> date | None:
        return to_date(value)

    def to_period(self) -> InsurancePeriod:
        return InsurancePeriod(start=self.start, end=self.end)


class ProfileIn(_PayloadModel):
    dossier_category: DossierCategory = Field(
        validation_alias=AliasChoices("dossierCategory", "category", "dossier_category")
    )
    study_level: StudyLevel = Field(StudyLevel.COLLEGIAL, alias="studyLevel")
    date_of_birth: date | None = Field(None, validation_alias=AliasChoices("dateOfBirth", "dob", "date_of_birth"))
    country_of_residence: str = Field(
        "", validation_alias=AliasChoices("countryOfResidence", "country", "country_of_residence")
    )
    passport_state: PassportState = Field(
        PassportState.ABSENT, validation_alias=AliasChoices("passportState", "passportStatus", "passport_state")
    )
    passport_signed: bool = Field(False, alias="passportSigned")
    program_start: date | None = Field(None, validation_alias=AliasChoices("programStart", "startDate", "program_start"))
    program_end: date | None = Field(None, validation_alias=AliasChoices("programEnd", "endDate", "program_end"))

    form_declaration: bool = Field(False, alias="formDeclaration")
    admission_letter: bool = Field(False, alias="admissionLetter")
    transcripts: bool = False
    explanatory_letter: bool = Field(
        False, validation_alias=AliasChoices("explanatoryLetter", "explanationsStudy", "explanatory_letter")
    )
    full_time_justification: bool = Field(False, alias="fullTimeJustification")
    photo: bool = False
    payment_proof: bool = Field(False, alias="paymentProof")
    past_insurances: list[InsurancePeriodIn] = Field(default_factory=list, alias="pastInsurances")
    future_insurances: list[InsurancePeriodIn] = Field(default_factory=list, alias="futureInsurances")

    payer_type: PayerType = Field(PayerType.SELF, alias="payerType")
    finance_mode: FinanceMode = Field(FinanceMode.CALCULATED, alias="financeMode")
    available_funds: float = Field(0.0, alias="availableFunds", ge=0, allow_inf_nan=False)
    self_finance_proof: bool = Field(False, alias="selfFinanceProof")
    bank_statements_6_months: bool = Field(False, alias="bankStatements6Months")
    support_form: bool = Field(False, alias="supportForm")
    guarantor_finance_proof: bool = Field(False, alias="guarantorFinanceProof")
    financial_proof: bool = Field(False, alias="financialProof")

    previous_caq_start: date | None = Field(
        None, validation_alias=AliasChoices("previousCAQStart", "prevCAQStart", "previous_caq_start")
    )
    previous_caq_end: date | None = Field(
        None, validation_alias=AliasChoices("previousCAQEnd", "prevCAQEnd", "previous_caq_end")
    )
    previous_study_start: date | None = Field(
        None, validation_alias=AliasChoices("previousStudyStart", "prevStudyStart", "previous_study_start")
    )
    previous_study_end: date | None = Field(
        None, validation_alias=AliasChoices("previousStudyEnd", "prevStudyEnd", "previous_study_end")
    )
    country_entry_date: date | None = Field(
        None, validation_alias=AliasChoices("countryEntryDate", "entryDate", "country_entry_date")
    )
    is_new_program: bool = Field(False, alias="isNewProgram")

    minor_situation: MinorSituation | None = Field(None, alias="minorSituation")
    birth_certificate: bool = Field(False, alias="birthCertificate")
    parents_identity: bool = Field(False, alias="parentsIdentity")
    accompanying_parents_status: bool = Field(False, alias="accompanyingParentsStatus")
    non_accompanying_parent_identity: bool = Field(False, alias="nonAccompanyingParentIdentity")
    consent_declaration: bool = Field(False, alias="consentDeclaration")
    sole_custody_proof: bool = Field(False, alias="soleCustodyProof")
    parental_authority_delegation: bool = Field(False, alias="parentalAuthorityDelegation")
    custody_declaration: bool = Field(False, alias="custodyDeclaration")
    citizenship_proof: bool = Field(False, alias="citizenshipProof")
    responsible_adult_identity: bool = Field(False, alias="responsibleAdultIdentity")
    residence_proof: bool = Field(False, alias="residenceProof")
    criminal_record_check: bool = Field(False, alias="criminalRecordCheck")
    emancipation_judgment: bool = Field(False, alias="emancipationJudgment")

    @field_validator(
        "date_of_birth",
        "program_start",
        "program_end",
        "previous_caq_start",
        "previous_caq_end",
        "previous_study_start",
        "previous_study_end",
        "country_entry_date",
        mode="before",
    )
    @classmethod
    def _read_date(cls, value: Any) -> date | None:
        return to_date(value)

    @field_validator("dossier_category", mode="before")
    @classmethod
    def _read_category(cls, value: Any) -> Any:
        return _CATEGORIES.get(fold(str(value)), value)

    @field_validator("study_level", mode="before")
    @classmethod
    def _read_study_level(cls, value: Any) -> Any:
        return _STUDY_LEVELS.get(fold(str(value)), value)

    @field_validator("finance_mode", mode="before")
    @classmethod
    def _read_finance_mode(cls, value: Any) -> Any:
        return _FINANCE_MODES.get(fold(str(value)), value)

    @field_validator("passport_state", "payer_type", "minor_situation", mode="before")
    @classmethod
    def _lowercase(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    def to_profile(self) -> ApplicantProfile:
        category = self.dossier_category

        renewal = None
        if category.application_type is ApplicationType.RENEWAL:
            renewal = RenewalHistory(
                previous_caq_start=self.previous_caq_start,
                previous_caq_end=self.previous_caq_end,
                previous_study_start=self.previous_study_start,
                previous_study_end=self.previous_study_end,
                country_entry_date=self.country_entry_date,
                is_new_program=self.is_new_program,
            )

        minor = None
        if category.is_minor or self.minor_situation is not None:
            minor = MinorFile(
                situation=self.minor_situation or MinorSituation.BOTH_PARENTS,
                birth_certificate=self.birth_certificate,
                parents_identity=self.parents_identity,
                accompanying_parents_status=self.accompanying_parents_status,
                non_accompanying_parent_identity=self.non_accompanying_parent_identity,
                consent_declaration=self.consent_declaration,
                sole_custody_proof=self.sole_custody_proof,
                parental_authority_delegation=self.parental_authority_delegation,
                custody_declaration=self.custody_declaration,
                citizenship_proof=self.citizenship_proof,
                responsible_adult_identity=self.responsible_adult_identity,
                residence_proof=self.residence_proof,
                criminal_record_check=self.criminal_record_check,
                emancipation_judgment=self.emancipation_judgment,
            )

        return ApplicantProfile(
            dossier_category=category,
            study_level=self.study_level,
            date_of_birth=self.date_of_birth,
            country_of_residence=self.country_of_residence,
            passport_state=self.passport_state,
            passport_signed=self.passport_signed,
            program_start=self.program_start,
            program_end=self.program_end,
            documents=DocumentSet(
                form_declaration=self.form_declaration,
                admission_letter=self.admission_letter,
                transcripts=self.transcripts,
                explanatory_letter=self.explanatory_letter,
                full_time_justification=self.full_time_justification,
                photo=self.photo,
                payment_proof=self.payment_proof,
                past_insurances=tuple(period.to_period() for period in self.past_insurances),
                future_insurances=tuple(period.to_period() for period in self.future_insurances),
            ),
            finances=Finances(
                payer_type=self.payer_type,
                mode=self.finance_mode,
                available_funds=self.available_funds,
                self_finance_proof=self.self_finance_proof,
                bank_statements_6_months=self.bank_statements_6_months,
                support_form=self.support_form,
                guarantor_finance_proof=self.guarantor_finance_proof,
                financial_proof=self.financial_proof,
            ),
            renewal=renewal,
            minor=minor,
        )


class EventIn(_PayloadModel):
    id: str | None = None
    kind: EventKind = Field(EventKind.OTHER, validation_alias=AliasChoices("type", "kind"))
    category: EventCategory | None = None
    submission_date: date | None = Field(None, alias="submissionDate")
    start: date | None = None
    end: date | None = None
    label: str | None = Field(None, validation_alias=AliasChoices("label", "title"))
    linked_program: str | None = Field(None, alias="linkedProgram")
    level: str | None = None
    is_outside_canada: bool = Field(False, alias="isOutsideCanada")
    note: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _read_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("submission_date", "start", "end", mode="before")
    @classmethod
    def _read_date(cls, value: Any) -> date | None:
        return to_date(value)

    @field_validator("kind", mode="before")
    @classmethod
    def _read_kind(cls, value: Any) -> EventKind:
        # Event types outside the known set are kept as OTHER.
        if isinstance(value, EventKind):
            return value
        code = str(value).strip().upper()
        if code in EventKind.__members__:
            return EventKind[code]
        return _PERMIT_TYPES.get(fold(str(value)), EventKind.OTHER)

    @field_validator("category", mode="before")
    @classmethod
    def _read_category(cls, value: Any) -> Any:
        return _EVENT_CATEGORY_CODES.get(value, value) if isinstance(value, str) else value

    @model_validator(mode="after")
    def _derive_kind_and_category(self) -> EventIn:
        if self.kind is EventKind.OTHER and self.label:
            if any(token in fold(self.label) for token in INSURANCE_LABEL_TOKENS):
                self.kind = EventKind.INSURANCE
        if self.category is None:
            self.category = (
                EventCategory.ADMINISTRATIVE if self.kind in ADMINISTRATIVE_KINDS else EventCategory.CANDIDATE
            )
        return self

    def to_event(self, index: int = 0) -> TimelineEvent:
        return TimelineEvent(
            id=self.id or f"evt-{index}",
            kind=self.kind,
            category=self.category,
            submission_date=self.submission_date,
            start=self.start,
            end=self.end,
            label=self.label,
            linked_program=self.linked_program,
            level=self.level,
            is_outside_canada=self.is_outside_canada,
            note=self.note,
        )


def profile_from_dict(payload: Mapping[str, Any]) -> ApplicantProfile:
    return ProfileIn.model_validate(payload).to_profile()


def event_from_dict(payload: Mapping[str, Any], index: int = 0) -> TimelineEvent:
    return EventIn.model_validate(payload).to_event(index)


def events_from_models(items: Iterable[EventIn]) -> list[TimelineEvent]:
    return [item.to_event(i) for i, item in enumerate(items)]


def events_from_dicts(payloads: Iterable[Mapping[str, Any]]) -> list[TimelineEvent]:
    return events_from_models(EventIn.model_validate(item) for item in payloads)
