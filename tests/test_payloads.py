from datetime import date

import pytest
from pydantic import ValidationError

from caqcheck.constants import (
    DossierCategory,
    EventCategory,
    EventKind,
    FinanceMode,
    MinorSituation,
    PassportState,
    PayerType,
    StudyLevel,
)
from caqcheck.payloads import EventIn, ProfileIn, event_from_dict, events_from_dicts, profile_from_dict


def test_profile_accepts_form_field_names() -> None:
    profile = profile_from_dict(
        {
            "category": "MAJ_R_NC",
            "studyLevel": "Universitaire",
            "dob": "2000-02-29",
            "country": "  Maroc ",
            "passportStatus": "valid",
            "passportSigned": "yes",
            "explanationsStudy": True,
            "financeMode": "manual",
            "availableFunds": "12000.50",
            "prevCAQStart": "2022-01-01",
            "entryDate": "2022-08-20",
            "pastInsurances": [{"start": "2022-01-01", "end": "2022-12-31"}],
        }
    )
    assert profile.dossier_category is DossierCategory.MAJ_R_NC
    assert profile.study_level is StudyLevel.UNIVERSITY
    assert profile.date_of_birth == date(2000, 2, 29)
    assert profile.country_of_residence == "Maroc"
    assert profile.passport_state is PassportState.VALID
    assert profile.passport_signed is True
    assert profile.documents.explanatory_letter is True
    assert profile.finances.mode is FinanceMode.DECLARED
    assert profile.finances.available_funds == 12000.5
    assert profile.renewal is not None
    assert profile.renewal.previous_caq_start == date(2022, 1, 1)
    assert profile.renewal.country_entry_date == date(2022, 8, 20)
    assert profile.documents.past_insurances[0].end == date(2022, 12, 31)
    assert profile.minor is None


def test_profile_accepts_snake_case_keys() -> None:
    profile = profile_from_dict(
        {
            "dossier_category": "MIN_1_C",
            "study_level": "primary",
            "payer_type": "guarantor",
            "support_form": True,
            "minor_situation": "one_parent",
            "sole_custody_proof": True,
        }
    )
    assert profile.dossier_category is DossierCategory.MIN_1_C
    assert profile.study_level is StudyLevel.PRIMARY
    assert profile.finances.payer_type is PayerType.GUARANTOR
    assert profile.finances.support_form is True
    assert profile.renewal is None
    assert profile.minor is not None
    assert profile.minor.situation is MinorSituation.ONE_PARENT
    assert profile.minor.sole_custody_proof is True


def test_form_labels_and_spaced_codes_select_the_category() -> None:
    labels = {
        "MINEUR Renouvellement (Exemption financière)": DossierCategory.MIN_R_C,
        "MAJEUR Première demande (Finance à vérifier)": DossierCategory.MAJ_1_NC,
        "majeur renouvellement (exemption financiere)": DossierCategory.MAJ_R_C,
        "MAJ 1 NC": DossierCategory.MAJ_1_NC,
        "min r nc": DossierCategory.MIN_R_NC,
    }
    for label, category in labels.items():
        assert profile_from_dict({"category": label}).dossier_category is category


def test_study_level_aliases() -> None:
    assert profile_from_dict({"category": "MAJ_1_NC", "studyLevel": "Secondaire"}).study_level is StudyLevel.PRIMARY
    assert profile_from_dict({"category": "MAJ_1_NC", "studyLevel": "Collégial"}).study_level is StudyLevel.COLLEGIAL
    assert profile_from_dict({"category": "MAJ_1_NC", "studyLevel": "professionnel"}).study_level is (
        StudyLevel.PROFESSIONAL
    )


def test_missing_values_take_defaults() -> None:
    profile = profile_from_dict({"category": "MAJ_1_NC", "studyLevel": None, "country": "", "startDate": "31/12/2025"})
    assert profile.study_level is StudyLevel.COLLEGIAL
    assert profile.country_of_residence == ""
    assert profile.passport_state is PassportState.ABSENT
    assert profile.finances.available_funds == 0.0
    assert profile.program_start is None


def test_minor_category_without_situation_defaults_to_both_parents() -> None:
    profile = profile_from_dict({"category": "MIN_1_NC", "minorSituation": ""})
    assert profile.minor is not None
    assert profile.minor.situation is MinorSituation.BOTH_PARENTS


def test_unknown_values_are_rejected() -> None:
    rejected = [
        {"category": "NOPE"},
        {},
        {"category": "MAJ_1_NC", "studyLevel": "doctorate"},
        {"category": "MAJ_1_NC", "passportStatus": "lost"},
        {"category": "MAJ_1_NC", "minorSituation": "grandparents"},
        {"category": "MAJ_1_NC", "availableFunds": "lots"},
        {"category": "MAJ_1_NC", "availableFunds": -500},
    ]
    for payload in rejected:
        with pytest.raises(ValidationError):
            ProfileIn.model_validate(payload)


def test_validation_errors_are_value_errors() -> None:
    with pytest.raises(ValueError):
        profile_from_dict({"category": "NOPE"})


def test_event_defaults() -> None:
    event = event_from_dict({"type": "CAQ_REFUSAL", "start": "2020-01-10"}, index=3)
    assert event.id == "evt-3"
    assert event.kind is EventKind.CAQ_REFUSAL
    assert event.category is EventCategory.ADMINISTRATIVE
    assert event.anchor == date(2020, 1, 10)
    assert event.is_ranged is False
    assert event.is_pending is False


def test_numeric_event_id_is_kept_as_text() -> None:
    assert event_from_dict({"id": 1717, "type": "ENTRY", "start": "2020-01-10"}).id == "1717"


def test_unknown_event_type_becomes_other() -> None:
    event = event_from_dict({"type": "VISA", "start": "2020-01-10", "category": "USR"})
    assert event.kind is EventKind.OTHER
    assert event.category is EventCategory.CANDIDATE


def test_study_permit_label_is_a_permit() -> None:
    event = event_from_dict({"type": "Permis d'études", "start": "2020-01-10", "end": "2021-01-10"})
    assert event.kind is EventKind.WORK_PERMIT
    assert event.category is EventCategory.CANDIDATE


def test_insurance_label_on_other_event_is_promoted() -> None:
    event = event_from_dict({"type": "OTHER", "label": "Assurance RAMQ", "start": "2021-01-01", "end": "2021-12-31"})
    assert event.kind is EventKind.INSURANCE
    assert event.is_ranged is True


def test_pending_event_has_submission_only() -> None:
    event = event_from_dict({"type": "CAQ", "submissionDate": "2021-03-01", "category": "ADM"})
    assert event.is_pending is True
    assert event.anchor == date(2021, 3, 1)
    assert event.category is EventCategory.ADMINISTRATIVE


def test_submission_date_wins_as_anchor() -> None:
    event = event_from_dict({"type": "CAQ", "submissionDate": "2021-03-01", "start": "2021-05-01", "end": "2022-05-01"})
    assert event.anchor == date(2021, 3, 1)
    assert event.is_pending is False


def test_event_models_keep_their_position_for_ids() -> None:
    events = events_from_dicts([{"type": "ENTRY", "start": "2021-01-01"}, {"id": "x", "type": "EXIT"}])
    assert [e.id for e in events] == ["evt-0", "x"]
    assert EventIn.model_validate({"kind": "exit"}).kind is EventKind.EXIT


def test_non_mapping_items_are_rejected() -> None:
    with pytest.raises(ValidationError):
        events_from_dicts([{"type": "ENTRY", "start": "2021-01-01"}, "junk"])  # type: ignore[list-item]
