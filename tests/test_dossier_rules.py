from datetime import date
from typing import Any

import pytest

from caqcheck.constants import DossierCategory, Recommendation, Severity, Status
from caqcheck.legalbrain.dossier_rules import derive_recommendation
from caqcheck.payloads import profile_from_dict
from caqcheck.rules import evaluate
from caqcheck.schemas import ApplicantProfile, DossierAnalysisResult

TODAY = date(2025, 6, 1)

ADULT_COLLEGIAL: dict[str, Any] = {
    "category": "MAJ_1_NC",
    "studyLevel": "Collegial",
    "dob": "1998-05-10",
    "country": "Sénégal",
    "passportStatus": "valid",
    "passportSigned": True,
    "formDeclaration": True,
    "admissionLetter": True,
    "transcripts": True,
    "startDate": "2025-09-01",
    "endDate": "2027-06-30",
    "futureInsurances": [{"start": "2025-09-01", "end": "2027-06-30"}],
    "payerType": "self",
    "selfFinanceProof": True,
    "bankStatements6Months": True,
    "financeMode": "calculated",
    "availableFunds": 20000,
}


def _profile(**overrides: Any) -> ApplicantProfile:
    return profile_from_dict({**ADULT_COLLEGIAL, **overrides})


def _item(result: DossierAnalysisResult, label_fragment: str):
    matches = [c for c in result.controls if label_fragment.lower() in c.label.lower()]
    assert matches, f"no control matching {label_fragment!r}"
    return matches[0]


def _labels(result: DossierAnalysisResult) -> list[str]:
    return [c.label for c in result.controls]


def test_complete_adult_collegial_file_is_acceptable() -> None:
    result = evaluate(_profile(), now=TODAY)
    assert result.recommendation is Recommendation.ACCEPTABLE
    assert result.summary.blocking_count == 0
    assert result.summary.major_count == 0
    assert result.summary.total_controls == 6
    assert all(c.status is Status.OK for c in result.controls)
    assert result.is_adult is True
    assert result.summary.passport_label == "Valid"


def test_unsigned_passport_for_adult_is_blocking() -> None:
    result = evaluate(_profile(passportSigned=False), now=TODAY)
    passport = _item(result, "passport")
    assert passport.status is Status.INCONSISTENT
    assert passport.severity is Severity.BLOCKING
    assert result.recommendation is Recommendation.HIGH_RISK
    assert result.summary.passport_label == "Unsigned"


def test_one_parent_minor_without_consent_or_custody_is_high_risk() -> None:
    profile = _profile(
        category="MIN_1_NC",
        dob="2012-01-01",
        minorSituation="one_parent",
        birthCertificate=True,
        parentsIdentity=True,
        nonAccompanyingParentIdentity=True,
        consentDeclaration=False,
        soleCustodyProof=False,
    )
    result = evaluate(profile, now=TODAY)
    consent = _item(result, "consent")
    assert consent.status is Status.MISSING
    assert consent.severity is Severity.BLOCKING
    assert result.recommendation is Recommendation.HIGH_RISK
    assert result.is_adult is False


def test_sole_custody_satisfies_consent_and_note_says_so() -> None:
    profile = _profile(
        category="MIN_1_NC",
        dob="2012-01-01",
        minorSituation="one_parent",
        birthCertificate=True,
        parentsIdentity=True,
        nonAccompanyingParentIdentity=True,
        soleCustodyProof=True,
    )
    consent = _item(evaluate(profile, now=TODAY), "consent")
    assert consent.status is Status.OK
    assert "sole custody" in consent.note


def test_unsigned_passport_tolerated_for_minor() -> None:
    profile = _profile(category="MIN_1_NC", dob="2012-01-01", passportSigned=False)
    assert _item(evaluate(profile, now=TODAY), "passport").status is Status.OK


def test_expired_and_absent_passport() -> None:
    assert _item(evaluate(_profile(passportStatus="expired"), now=TODAY), "passport").status is Status.EXPIRED
    absent = evaluate(_profile(passportStatus="absent"), now=TODAY)
    assert _item(absent, "passport").status is Status.MISSING
    assert absent.summary.passport_label == "Absent"


def test_primary_level_adds_exemption_note_first() -> None:
    result = evaluate(_profile(studyLevel="Primaire", admissionLetter=False), now=TODAY)
    first = result.controls[0]
    assert "exemption" in first.label.lower()
    assert first.status is Status.OK
    assert first.severity is Severity.MINOR
    assert _item(result, "admission").status is Status.OK


def test_admission_letter_required_for_adult_post_secondary() -> None:
    result = evaluate(_profile(admissionLetter=False), now=TODAY)
    assert _item(result, "admission").status is Status.MISSING
    assert result.recommendation is Recommendation.HIGH_RISK


def test_renewal_with_explanatory_letter_needs_completion() -> None:
    profile = _profile(
        category="MAJ_R_NC",
        studyLevel="University",
        transcripts=False,
        explanatoryLetter=True,
        fullTimeJustification=True,
    )
    result = evaluate(profile, now=TODAY)
    transcripts = _item(result, "transcripts")
    assert transcripts.status is Status.INCONSISTENT
    assert transcripts.severity is Severity.MAJOR
    assert _item(result, "full-time").status is Status.OK
    assert result.recommendation is Recommendation.NEEDS_COMPLETION


def test_renewal_previous_caq_must_cover_previous_studies() -> None:
    profile = _profile(
        category="MAJ_R_NC",
        studyLevel="University",
        prevCAQStart="2024-01-01",
        prevCAQEnd="2024-12-31",
        prevStudyStart="2023-09-01",
        prevStudyEnd="2024-12-31",
        startDate="2025-01-01",
        endDate="2025-12-31",
    )
    result = evaluate(profile, now=TODAY)
    continuity = _item(result, "continuity")
    assert continuity.status is Status.MISSING
    assert continuity.severity is Severity.MAJOR
    assert result.recommendation is Recommendation.NEEDS_COMPLETION


def test_renewal_entry_after_program_start_is_minor_inconsistency() -> None:
    profile = _profile(category="MAJ_R_NC", studyLevel="University", entryDate="2025-10-01", isNewProgram=True)
    result = evaluate(profile, now=TODAY)
    entry = _item(result, "entry date")
    assert entry.status is Status.INCONSISTENT
    assert entry.severity is Severity.MINOR
    assert "Profile: new program" in _labels(result)
    assert result.recommendation is Recommendation.ACCEPTABLE


def test_renewal_below_university_requires_past_insurance() -> None:
    result = evaluate(_profile(category="MAJ_R_NC"), now=TODAY)
    past = _item(result, "past insurance")
    assert past.status is Status.MISSING
    assert result.recommendation is Recommendation.NEEDS_COMPLETION


def test_university_insurance_is_deemed_included() -> None:
    result = evaluate(_profile(studyLevel="Universitaire", futureInsurances=[]), now=TODAY)
    insurance = _item(result, "insurance")
    assert insurance.status is Status.OK
    assert insurance.severity is Severity.MINOR
    assert result.recommendation is Recommendation.ACCEPTABLE


def test_short_program_is_blocking() -> None:
    result = evaluate(_profile(startDate="2025-09-01", endDate="2026-01-15"), now=TODAY)
    duration = _item(result, "duration")
    assert duration.status is Status.INCONSISTENT
    assert duration.severity is Severity.BLOCKING
    assert result.recommendation is Recommendation.HIGH_RISK


def test_missing_program_dates_fail_duration_and_leave_window_empty() -> None:
    result = evaluate(_profile(startDate=None, endDate="garbage"), now=TODAY)
    assert _item(result, "duration").status is Status.INCONSISTENT
    assert result.caq_window_start is None
    assert result.caq_window_end is None


def test_caq_window_estimate() -> None:
    result = evaluate(_profile(), now=TODAY)
    assert result.caq_window_start == date(2025, 8, 1)
    assert result.caq_window_end == date(2027, 9, 30)


def test_finance_exempt_category_skips_finance_checks() -> None:
    result = evaluate(_profile(category="MAJ_1_C", availableFunds=0, selfFinanceProof=False), now=TODAY)
    finance = _item(result, "financial")
    assert finance.status is Status.OK
    assert "exempt" in finance.note.lower()


def test_finance_verified_federally_outside_mifi_countries() -> None:
    result = evaluate(_profile(country="France", availableFunds=0), now=TODAY)
    finance = _item(result, "financial")
    assert finance.status is Status.OK
    assert "IRCC" in finance.note


def test_other_territory_is_still_verified_by_mifi() -> None:
    result = evaluate(_profile(country="Autre territoire", availableFunds=100), now=TODAY)
    assert _item(result, "financial").status is Status.INSUFFICIENT


def test_country_match_ignores_accents_and_case() -> None:
    result = evaluate(_profile(country="senegal", availableFunds=100), now=TODAY)
    assert _item(result, "financial").status is Status.INSUFFICIENT


def test_insufficient_funds_reports_shortfall() -> None:
    result = evaluate(_profile(availableFunds=10000), now=TODAY)
    finance = _item(result, "financial")
    assert finance.status is Status.INSUFFICIENT
    assert finance.severity is Severity.MAJOR
    assert "shortfall of 5,478$" in finance.note
    assert result.recommendation is Recommendation.NEEDS_COMPLETION


def test_guarantor_without_support_form_is_missing() -> None:
    profile = _profile(payerType="guarantor", supportForm=False, guarantorFinanceProof=True)
    finance = _item(evaluate(profile, now=TODAY), "financial")
    assert finance.status is Status.MISSING
    assert "guarantor" in finance.note.lower()


def test_self_payer_without_bank_statements_gets_specific_note() -> None:
    finance = _item(evaluate(_profile(bankStatements6Months=False), now=TODAY), "financial")
    assert finance.status is Status.MISSING
    assert "6 months" in finance.note


def test_declared_mode_requires_financial_proof() -> None:
    missing = _item(evaluate(_profile(financeMode="declared", financialProof=False), now=TODAY), "financial")
    assert missing.status is Status.MISSING
    ok = _item(evaluate(_profile(financeMode="manual", financialProof=True, availableFunds=0), now=TODAY), "financial")
    assert ok.status is Status.OK


def test_finance_is_blocking_for_minors() -> None:
    profile = _profile(
        category="MIN_1_NC",
        dob="2012-01-01",
        minorSituation="both_parents",
        birthCertificate=True,
        parentsIdentity=True,
        accompanyingParentsStatus=True,
        availableFunds=1000,
    )
    result = evaluate(profile, now=TODAY)
    finance = _item(result, "financial")
    assert finance.status is Status.INSUFFICIENT
    assert finance.severity is Severity.BLOCKING
    assert result.recommendation is Recommendation.HIGH_RISK


def test_young_applicant_in_adult_category_is_treated_as_minor() -> None:
    result = evaluate(_profile(dob="2010-03-01"), now=TODAY)
    assert result.is_adult is False
    assert _item(result, "birth certificate").status is Status.MISSING
    assert result.recommendation is Recommendation.HIGH_RISK


def test_minor_category_aged_17_skips_minor_documents() -> None:
    profile = _profile(category="MIN_1_NC", dob="2008-03-01", minorSituation="both_parents")
    result = evaluate(profile, now=TODAY)
    assert result.is_adult is False
    assert not any("birth certificate" in label.lower() for label in _labels(result))


def test_unaccompanied_minor_requires_responsible_adult_file() -> None:
    profile = _profile(category="MIN_1_NC", dob="2011-02-01", minorSituation="unaccompanied")
    result = evaluate(profile, now=TODAY)
    labels = _labels(result)
    expected = [
        "Delegation of parental authority (each parent)",
        "Custody by an adult in Quebec",
        "Responsible adult's status (citizen or permanent resident)",
        "Responsible adult's identity",
        "Responsible adult's proof of residence",
        "No criminal record (every adult in the household)",
    ]
    start = labels.index(expected[0])
    assert labels[start : start + len(expected)] == expected
    assert _item(result, "citizen").severity is Severity.MAJOR
    assert _item(result, "proof of residence").severity is Severity.MAJOR
    assert _item(result, "criminal record").severity is Severity.BLOCKING


def test_signature_reminder_follows_forms() -> None:
    profile = _profile(category="MIN_1_NC", dob="2012-01-01", minorSituation="both_parents", admissionLetter=False)
    reminder = _item(evaluate(profile, now=TODAY), "signed forms")
    assert reminder.status is Status.MISSING
    assert reminder.severity is Severity.MINOR
    assert "typed" in reminder.note.lower()


def test_emancipated_minor_needs_judgment() -> None:
    profile = _profile(category="MIN_1_NC", dob="2010-01-01", minorSituation="emancipated")
    result = evaluate(profile, now=TODAY)
    judgment = _item(result, "emancipation")
    assert judgment.status is Status.MISSING
    assert judgment.severity is Severity.BLOCKING
    assert not any("birth certificate" in label.lower() for label in _labels(result))


def test_category_drives_application_type_and_exemption() -> None:
    profile = _profile(category="MIN_R_C")
    assert profile.dossier_category is DossierCategory.MIN_R_C
    assert profile.is_renewal is True
    assert profile.finance_exempt is True
    assert profile.is_minor_category is True


def test_french_form_label_selects_the_category() -> None:
    profile = _profile(category="MINEUR Renouvellement (Exemption financière)", dob="2012-01-01")
    assert profile.dossier_category is DossierCategory.MIN_R_C

    result = evaluate(profile, now=TODAY)
    assert result.summary.type_label == "Renewal"
    assert not any("financ" in label.lower() for label in _labels(result))


def test_missing_study_level_is_treated_as_collegial() -> None:
    payload = {key: value for key, value in ADULT_COLLEGIAL.items() if key != "studyLevel"}
    result = evaluate(profile_from_dict({**payload, "futureInsurances": []}), now=TODAY)
    insurance = _item(result, "insurance")
    assert insurance.status is Status.MISSING
    assert result.summary.level_label == "Collegial"


def test_minor_without_declared_situation_is_checked_as_accompanied_by_both_parents() -> None:
    result = evaluate(_profile(category="MIN_1_NC", dob="2012-01-01"), now=TODAY)
    stay = _item(result, "Parents' length of stay")
    assert stay.status is Status.MISSING
    assert stay.severity is Severity.MAJOR


def test_unparseable_evaluation_date_is_rejected() -> None:
    with pytest.raises(ValueError, match="not-a-date"):
        evaluate(_profile(), now="not-a-date")


def test_evaluation_is_deterministic() -> None:
    profile = _profile(passportSigned=False, availableFunds=3000)
    assert evaluate(profile, now=TODAY).to_dict() == evaluate(profile, now=TODAY).to_dict()


def test_recommendation_tracks_blocking_and_major_violations() -> None:
    profiles = [
        _profile(),
        _profile(passportSigned=False),
        _profile(availableFunds=1),
        _profile(category="MAJ_R_NC"),
        _profile(category="MIN_1_NC", dob="2012-01-01", minorSituation="unaccompanied"),
    ]
    for profile in profiles:
        result = evaluate(profile, now=TODAY)
        blocking = any(c.severity is Severity.BLOCKING and c.status is not Status.OK for c in result.controls)
        major = any(c.severity is Severity.MAJOR and c.status is not Status.OK for c in result.controls)
        if blocking:
            assert result.recommendation is Recommendation.HIGH_RISK
        elif major:
            assert result.recommendation is Recommendation.NEEDS_COMPLETION
        else:
            assert result.recommendation is Recommendation.ACCEPTABLE
        assert derive_recommendation(result.controls) is result.recommendation


def test_to_dict_serializes_enums_and_dates() -> None:
    payload = evaluate(_profile(), now=TODAY).to_dict()
    assert payload["recommendation"] == "Acceptable"
    assert payload["caq_window_start"] == "2025-08-01"
    assert payload["controls"][0]["severity"] == "Blocking"
