# tests/test_validation.py
"""
Unit tests for vmtb_core.validation (step validation and proceed gates).
"""
from vmtb_core.model import PatientData, Stage
from vmtb_core.session import CaseWorkflowSession
from vmtb_core.validation import (
    proceed_to_digitization,
    proceed_to_submit,
    validate_all,
    validate_anonymization,
    validate_digitization,
    validate_documents_uploaded,
    validate_metadata,
    validate_submission,
)
from vmtb_core.verification import StageState, stage_state


def populate(session, factory, *names):
    ids = []
    for name in names:
        f = factory(name)
        session.add_uploaded_file(f)
        ids.append(f.id)
    return ids


class TestStepValidation:

    def test_valid_metadata(self, patient):
        result = validate_metadata(patient)
        assert result.valid
        assert result.errors == []

    def test_missing_metadata(self):
        result = validate_metadata(PatientData(age="200"))
        assert not result.valid
        assert result.errors == [
            "Patient name is required",
            "Valid patient age is required",
            "Patient sex is required",
            "Case name is required",
            "Cancer type is required",
        ]

    def test_non_numeric_age(self, patient):
        patient.age = "fifty"
        assert "Valid patient age is required" in validate_metadata(patient).errors

    def test_no_patient(self):
        assert not validate_metadata(None).valid

    def test_documents_uploaded(self, session, image_file_factory):
        assert validate_documents_uploaded([]).errors == ["At least one document must be uploaded"]
        populate(session, image_file_factory, "a.png")
        assert validate_documents_uploaded(session.uploaded_files).valid

    def test_stage_validation_lists_unverified(self, session, image_file_factory):
        a, _ = populate(session, image_file_factory, "a.png", "b.png")
        session.mark_anonymized_visited(a)
        result = validate_anonymization(session.uploaded_files)
        assert not result.valid
        assert result.errors == ["1 document(s) require review for anonymization"]
        assert result.unverified_documents == ["b.png"]
        assert validate_digitization(session.uploaded_files).unverified_documents == ["a.png", "b.png"]

    def test_validate_all_deduplicates_names(self, session, patient, image_file_factory):
        populate(session, image_file_factory, "a.png")
        result = validate_all(patient, session.uploaded_files)
        assert not result.valid
        assert len(result.errors) == 2
        assert result.unverified_documents == ["a.png"]


# ═══════════════════════════════════════════════════════════════════════════════
# PROCEED GATES
# ═══════════════════════════════════════════════════════════════════════════════

class TestProceedToDigitization:

    def test_single_file_on_screen_passes(self, session, image_file_factory):
        """The file being viewed counts as visited at the moment of the click."""
        (a,) = populate(session, image_file_factory, "a.png")
        decision = proceed_to_digitization(session, 0)
        assert decision.allowed
        assert session.get_file(a).anonymized_visited

    def test_blocked_redirects_to_first_missing(self, session, image_file_factory):
        a, b, c = populate(session, image_file_factory, "a.png", "b.png", "c.png")
        decision = proceed_to_digitization(session, 2)
        assert not decision.allowed
        assert decision.missing == ["a.png", "b.png"]
        assert decision.redirect_stage == Stage.ANONYMIZATION
        assert decision.redirect_index == 0
        # nothing committed on failure
        assert not session.get_file(c).anonymized_visited

    def test_empty_session_passes(self):
        assert proceed_to_digitization(CaseWorkflowSession(), 0).allowed


class TestProceedToSubmit:

    def test_requires_both_stages(self, session, image_file_factory):
        a, b = populate(session, image_file_factory, "a.png", "b.png")
        for file_id in (a, b):
            session.mark_anonymized_visited(file_id)
        session.mark_digitized_visited(a)

        decision = proceed_to_submit(session, 1)
        assert decision.allowed
        assert session.is_create_valid()

    def test_anonymization_gap_redirects_to_anonymization(self, session, image_file_factory):
        a, b = populate(session, image_file_factory, "a.png", "b.png")
        session.mark_anonymized_visited(a)
        session.mark_digitized_visited(a)
        session.mark_digitized_visited(b)

        decision = proceed_to_submit(session, 0)
        assert not decision.allowed
        assert decision.missing == ["b.png"]
        assert decision.redirect_stage == Stage.ANONYMIZATION
        assert decision.redirect_index == 1

    def test_digitization_gap_redirects_to_digitization(self, session, image_file_factory):
        a, b = populate(session, image_file_factory, "a.png", "b.png")
        for file_id in (a, b):
            session.mark_anonymized_visited(file_id)

        decision = proceed_to_submit(session, 1)
        assert not decision.allowed
        assert decision.missing == ["a.png"]
        assert decision.redirect_stage == Stage.DIGITIZATION
        assert decision.redirect_index == 0

    def test_modify_mode_exempts_untouched_originals(self, patient, image_file_factory):
        s = CaseWorkflowSession()
        original = image_file_factory("old.png")
        s.setup_edit_mode("case-1", patient, [original])
        new = image_file_factory("new.png")
        s.add_uploaded_file(new)
        s.mark_anonymized_visited(new.id)

        decision = proceed_to_submit(s, 1)
        assert decision.allowed
        assert s.is_modify_valid()

    def _verified(self, factory, name, **flags):
        values = {"anonymized_visited": True, "digitized_visited": True}
        values.update(flags)
        return factory(name).copy_with(**values)

    def test_submission_validation_exempts_untouched_originals(self, patient, image_file_factory):
        s = CaseWorkflowSession()
        edited = self._verified(image_file_factory, "a.png")
        untouched = self._verified(image_file_factory, "b.png", anonymized_visited=False)
        s.setup_edit_mode("case-1", patient, [edited, untouched])
        s.mark_file_as_edited(edited.id)

        assert s.is_modify_valid()
        result = validate_submission(s)
        assert result.valid
        assert result.unverified_documents == []
        # the session-less check still sees the flag
        assert not validate_all(patient, s.uploaded_files).valid

    def test_submission_validation_blocks_edited_original(self, patient, image_file_factory):
        s = CaseWorkflowSession()
        original = self._verified(image_file_factory, "b.png", anonymized_visited=False)
        s.setup_edit_mode("case-1", patient, [original])
        s.mark_file_as_edited(original.id)

        result = validate_submission(s)
        assert not result.valid
        assert result.unverified_documents == ["b.png"]
        assert not s.is_modify_valid()

    def test_redaction_in_modify_mode_blocks_until_reconfirmed(self, patient, image_file_factory):
        s = CaseWorkflowSession()
        a = self._verified(image_file_factory, "a.png")
        b = self._verified(image_file_factory, "b.png")
        s.setup_edit_mode("case-1", patient, [a, b])
        s.update_anonymized_image(a.id, "data:image/png;base64,iVBORw0KGgo=")
        s.mark_file_as_edited(a.id)
        assert stage_state(s.get_file(a.id), Stage.ANONYMIZATION) == StageState.VISITED_DIRTY

        decision = proceed_to_digitization(s, 1)
        assert not decision.allowed
        assert decision.missing == ["a.png"]
        assert decision.redirect_stage == Stage.ANONYMIZATION
        assert decision.redirect_index == 0

        decision = proceed_to_digitization(s, 0)
        assert decision.allowed
        assert stage_state(s.get_file(a.id), Stage.ANONYMIZATION) == StageState.VISITED_CLEAN

    def test_dirty_marking_and_redaction_agree(self, patient, image_file_factory):
        outcomes = []
        for edit in ("redaction", "dirty"):
            s = CaseWorkflowSession()
            a = self._verified(image_file_factory, "a.png")
            s.setup_edit_mode("case-1", patient, [a])
            s.mark_file_as_edited(a.id)
            if edit == "redaction":
                s.update_anonymized_image(a.id, "data:image/png;base64,iVBORw0KGgo=")
            else:
                s.mark_anonymized_dirty(a.id)
            outcomes.append((
                stage_state(s.get_file(a.id), Stage.ANONYMIZATION),
                s.get_missing_anonymization(),
                s.is_modify_valid(),
            ))
        assert outcomes[0] == outcomes[1] == (StageState.VISITED_DIRTY, ["a.png"], False)

    def test_modify_mode_blocks_edited_original(self, patient, image_file_factory):
        s = CaseWorkflowSession()
        original = image_file_factory("old.png")
        s.setup_edit_mode("case-1", patient, [original])
        new = image_file_factory("new.png")
        s.add_uploaded_file(new)
        s.mark_anonymized_visited(new.id)
        s.mark_file_as_edited(original.id)

        decision = proceed_to_submit(s, 1)
        assert not decision.allowed
        assert decision.missing == ["old.png"]
        assert decision.redirect_index == 0
