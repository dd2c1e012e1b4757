"""
vMTB - Case Creation Wizard (Streamlit GUI)

Steps: metadata → upload → anonymize → digitize → review.
UI only; every rule lives in vmtb_core.
"""


# ==============================================================================
# STREAMLIT BOOTSTRAP
# This block MUST be the first Streamlit interaction in the process.
# ==============================================================================

import streamlit as st

st.set_page_config(
    page_title="vMTB - Case Documents",
    page_icon="🩺",
    layout="wide",
    initial_sidebar_state="collapsed",
)

import dataclasses
import logging
import os
import sys
import uuid
from typing import Optional

# Add src directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from vmtb_core import (
    DEFAULT_REDACTION_CONFIG,
    DEFAULT_WORKFLOW_CONFIG,
    FILE_CATEGORIES,
    NOTHING_TO_REDACT,
    PatientData,
    PdfRasterizationError,
    Stage,
    StageState,
    Tool,
    UploadedFile,
    proceed_to_digitization,
    proceed_to_submit,
    stage_state,
    validate_documents_uploaded,
    validate_metadata,
    validate_submission,
)
from vmtb_core.digitization import prefill_extracted_data
from vmtb_core.raster import bytes_to_data_url, data_url_to_bytes, data_url_to_image
from vmtb_core.verification import canonical_text
from canvas_component import redaction_canvas
from wizard_state import (
    STEPS,
    get_session,
    init_wizard_state,
    open_redactor,
    reset_canvas_widget,
    reset_wizard_state,
)

logging.basicConfig(
    level=getattr(logging, DEFAULT_WORKFLOW_CONFIG.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("vmtb.app")

CASE_STORE_KEY = "case_store"

TOOL_LABELS = {
    "Pan / zoom": None,
    "Rectangle": Tool.RECTANGLE,
    "Ellipse": Tool.ELLIPSE,
    "Freehand": Tool.FREEHAND,
    "Erase": Tool.ERASE,
}

STATE_BADGES = {
    StageState.UNVISITED: "○",
    StageState.VISITED_CLEAN: "✅",
    StageState.VISITED_DIRTY: "⚠️",
}

# ═══════════════════════════════════════════════════════════════════════════════
# SESSION STATE INITIALIZATION
# ═══════════════════════════════════════════════════════════════════════════════

ss = st.session_state
init_wizard_state(ss)
ss.setdefault(CASE_STORE_KEY, {})
session = get_session(ss)


def go_to(step: str, index: int = 0) -> None:
    ss['wizard_step'] = step
    ss['current_index'] = index
    ss['gate_missing'] = []


def flash(kind: str, message: str) -> None:
    ss['flash'] = (kind, message)


def show_flash() -> None:
    pending = ss.get('flash')
    if pending:
        kind, message = pending
        getattr(st, kind)(message)
        ss['flash'] = None


def current_file() -> Optional[UploadedFile]:
    files = session.uploaded_files
    if not files:
        return None
    index = min(max(ss['current_index'], 0), len(files) - 1)
    ss['current_index'] = index
    return files[index]


def mark_visited_on_entry(stage: Stage, file: UploadedFile) -> None:
    """Viewing a file in a step counts as a visit, once per navigation."""
    marker = (stage.value, file.id)
    if ss.get('visit_marker') == marker:
        return
    ss['visit_marker'] = marker
    if stage == Stage.ANONYMIZATION:
        session.mark_anonymized_visited(file.id)
    else:
        session.mark_digitized_visited(file.id)


def file_strip(stage: Stage, step: str) -> None:
    """Clickable list of files with their verification badge for `stage`."""
    for i, f in enumerate(session.uploaded_files):
        badge = STATE_BADGES[stage_state(f, stage)]
        label = f"{badge} {f.name}"
        if st.button(label, key=f"{step}_file_{f.id}", use_container_width=True,
                     type="primary" if i == ss['current_index'] else "secondary"):
            ss['current_index'] = i
            st.rerun()


def show_gate_failure(stage_label: str) -> None:
    missing = ss.get('gate_missing') or []
    if not missing:
        return
    st.error(
        f"Please complete the following documents before {stage_label}: {', '.join(missing)}"
    )


def redirect(decision) -> None:
    ss['gate_missing'] = decision.missing
    if decision.redirect_index is None:
        return
    step = "anonymize" if decision.redirect_stage == Stage.ANONYMIZATION else "digitize"
    ss['wizard_step'] = step
    ss['current_index'] = decision.redirect_index


# ═══════════════════════════════════════════════════════════════════════════════
# STEP 1: METADATA
# ═══════════════════════════════════════════════════════════════════════════════

def render_metadata_step() -> None:
    st.subheader("Patient & case details")
    patient = session.current_patient or PatientData()
    sexes = ["", "Female", "Male", "Other"]
    with st.form("metadata_form"):
        name = st.text_input("Patient name", value=patient.name)
        age = st.text_input("Age", value=patient.age)
        sex = st.selectbox("Sex", sexes, index=sexes.index(patient.sex) if patient.sex in sexes else 0)
        cancer_type = st.text_input("Cancer type", value=patient.cancer_type)
        case_name = st.text_input("Case name", value=patient.case_name)
        submitted = st.form_submit_button("Continue to upload", type="primary")

    if submitted:
        updated = PatientData(name=name, age=age, sex=sex, cancer_type=cancer_type, case_name=case_name)
        result = validate_metadata(updated)
        if not result.valid:
            for error in result.errors:
                st.error(error)
            return
        if session.is_edit_mode:
            session.current_patient = updated
        else:
            session.start_case(updated)
        go_to("upload")
        st.rerun()

    render_saved_cases()


def render_saved_cases() -> None:
    store = ss[CASE_STORE_KEY]
    if not store:
        return
    st.divider()
    st.subheader("Saved cases")
    for case_id, case in store.items():
        cols = st.columns([4, 1])
        cols[0].markdown(f"**{case['patient'].case_name}** · {len(case['files'])} document(s)")
        if cols[1].button("Modify", key=f"modify_{case_id}"):
            session.setup_edit_mode(case_id, dataclasses.replace(case['patient']), case['files'])
            go_to("upload")
            st.rerun()


# ═══════════════════════════════════════════════════════════════════════════════
# STEP 2: UPLOAD
# ═══════════════════════════════════════════════════════════════════════════════

def render_upload_step() -> None:
    st.subheader("Upload documents")
    uploads = st.file_uploader(
        "PDF, text or image files",
        type=["pdf", "txt", "png", "jpg", "jpeg"],
        accept_multiple_files=True,
        key=f"uploader_{ss.get('uploader_nonce', 0)}",
    )
    if uploads and st.button("Add files", type="primary"):
        for upload in uploads:
            mime = upload.type or "application/octet-stream"
            if not DEFAULT_WORKFLOW_CONFIG.is_allowed(mime):
                st.warning(f"Unsupported file type: {upload.name}")
                continue
            data = upload.getvalue()
            new_file = UploadedFile.create(
                upload.name[:DEFAULT_WORKFLOW_CONFIG.max_file_name_length],
                mime,
                bytes_to_data_url(data, mime),
                size=len(data),
            )
            if not session.add_uploaded_file(new_file):
                flash("warning", f"A document named '{upload.name}' already exists")
        ss['uploader_nonce'] = ss.get('uploader_nonce', 0) + 1
        st.rerun()

    for f in list(session.uploaded_files):
        cols = st.columns([4, 2, 1])
        cols[0].markdown(f"**{f.name}** · {f.type} · {f.size // 1024} KB")
        category = cols[1].selectbox(
            "Category", FILE_CATEGORIES,
            index=FILE_CATEGORIES.index(f.file_category) if f.file_category in FILE_CATEGORIES else 0,
            key=f"category_{f.id}", label_visibility="collapsed",
        )
        if category != f.file_category:
            session.update_file_category(f.id, category)
        if cols[2].button("Remove", key=f"remove_{f.id}"):
            session.remove_uploaded_file(f.id)
            st.rerun()

    left, middle, right = st.columns(3)
    if left.button("Back"):
        go_to("metadata")
        st.rerun()
    if session.uploaded_files and middle.button("Remove all"):
        session.clear_uploaded_files()
        st.rerun()
    if right.button("Next: anonymize", type="primary"):
        result = validate_documents_uploaded(session.uploaded_files)
        if not result.valid:
            st.error(result.errors[0])
            return
        prefill_extracted_data(session)
        go_to("anonymize")
        st.rerun()


# ═══════════════════════════════════════════════════════════════════════════════
# STEP 3: ANONYMIZE
# ═══════════════════════════════════════════════════════════════════════════════

def render_anonymize_step() -> None:
    file = current_file()
    if file is None:
        go_to("upload")
        st.rerun()
        return

    redactor = ss.get('redactor')
    if redactor is None or redactor.session is not session or redactor.file_id != file.id:
        redactor = open_redactor(ss, file.id)
    mark_visited_on_entry(Stage.ANONYMIZATION, file)

    if redactor.needs_pdf_load:
        with st.spinner("Rendering PDF pages..."):
            try:
                redactor.load_pdf_pages()
            except PdfRasterizationError as exc:
                logger.warning("PDF %s not renderable: %s", file.id, exc)
                flash("error", str(exc))
        reset_canvas_widget(ss)
        st.rerun()

    st.subheader(f"Anonymize · {file.name}")
    show_flash()
    show_gate_failure("proceeding to digitization")

    files_col, canvas_col, tools_col = st.columns([1, 4, 1])
    with files_col:
        file_strip(Stage.ANONYMIZATION, "anon")

    canvas = redactor.canvas
    with tools_col:
        if canvas is not None:
            labels = list(TOOL_LABELS)
            current_label = next(k for k, v in TOOL_LABELS.items() if v == canvas.tool)
            label = st.radio("Tool", labels, index=labels.index(current_label))
            wanted = TOOL_LABELS[label]
            if canvas.tool != wanted:
                canvas.select_tool(wanted)
                reset_canvas_widget(ss)
            size = st.selectbox("Brush", list(DEFAULT_REDACTION_CONFIG.brush_sizes), index=1)
            canvas.set_brush_size(size)
            ss['zoom'] = st.slider("Zoom", 0.5, 3.0, float(ss['zoom']), 0.25,
                                   disabled=not canvas.pan_zoom_enabled)
            if st.button("Undo", disabled=not canvas.shapes, use_container_width=True):
                canvas.undo()
                reset_canvas_widget(ss)
                st.rerun()
            if st.button("Clear", disabled=not canvas.shapes, use_container_width=True):
                canvas.clear()
                reset_canvas_widget(ss)
                st.rerun()
            if st.button("Anonymize", type="primary", use_container_width=True):
                result = redactor.anonymize()
                if result.committed:
                    flash("success", "Document anonymized successfully")
                elif result.reason == NOTHING_TO_REDACT:
                    flash("error", "Please draw at least one redaction region")
                reset_canvas_widget(ss)
                st.rerun()

    with canvas_col:
        if canvas is None:
            render_unredactable(file)
        else:
            bridge = ss.get('canvas_bridge')
            if bridge is None or bridge.canvas is not canvas:
                reset_canvas_widget(ss)
                bridge = ss['canvas_bridge']
            replayed = redaction_canvas(canvas, bridge, zoom=ss['zoom'],
                                        key=f"redaction_canvas_{ss['canvas_nonce']}")
            if replayed:
                reset_canvas_widget(ss)
                st.rerun()
            st.caption(f"{len(canvas.shapes)} pending redaction(s)")

        if file.is_pdf and file.pdf_pages:
            render_page_nav(redactor)

    render_file_nav("anonymize")
    if st.button("Go to Digitization", type="primary"):
        decision = proceed_to_digitization(session, ss['current_index'])
        if decision.allowed:
            go_to("digitize")
        else:
            redirect(decision)
        st.rerun()


def render_unredactable(file: UploadedFile) -> None:
    if file.is_pdf:
        st.warning("This PDF could not be rendered and cannot be redacted here.")
    elif file.type.startswith("text/"):
        st.text(data_url_to_bytes(file.data_url).decode("utf-8", errors="replace"))
    else:
        st.info("No preview available for this document type.")


def render_page_nav(redactor) -> None:
    prev_col, label_col, next_col = st.columns([1, 2, 1])
    page = redactor.page_index
    if prev_col.button("◀ Page", disabled=page <= 0):
        redactor.go_to_page(page - 1)
        reset_canvas_widget(ss)
        st.rerun()
    label_col.markdown(f"Page {page + 1} of {redactor.page_count}")
    if next_col.button("Page ▶", disabled=page >= redactor.page_count - 1):
        redactor.go_to_page(page + 1)
        reset_canvas_widget(ss)
        st.rerun()


def render_file_nav(step: str) -> None:
    prev_col, _, next_col = st.columns([1, 3, 1])
    index = ss['current_index']
    if prev_col.button("Previous file", key=f"{step}_prev", disabled=index <= 0):
        ss['current_index'] = index - 1
        st.rerun()
    if next_col.button("Next file", key=f"{step}_next",
                       disabled=index >= len(session.uploaded_files) - 1):
        ss['current_index'] = index + 1
        st.rerun()


# ═══════════════════════════════════════════════════════════════════════════════
# STEP 4: DIGITIZE
# ═══════════════════════════════════════════════════════════════════════════════

def render_digitize_step() -> None:
    file = current_file()
    if file is None:
        go_to("upload")
        st.rerun()
        return
    mark_visited_on_entry(Stage.DIGITIZATION, file)

    st.subheader(f"Digitize · {file.name}")
    show_flash()
    show_gate_failure("submitting")

    files_col, preview_col, text_col = st.columns([1, 3, 3])
    with files_col:
        file_strip(Stage.DIGITIZATION, "digit")
    with preview_col:
        raster = file.display_raster(0) if file.is_anonymizable else None
        if raster:
            st.image(data_url_to_image(raster), use_container_width=True)
        else:
            render_unredactable(file)
    with text_col:
        saved = canonical_text(file.extracted_data) if file.extracted_data else "{}"
        text = st.text_area("Extracted data (JSON or free text)", value=saved,
                            height=400, key=f"digitize_text_{file.id}")
        if st.button("Save", disabled=text == saved):
            if session.save_extracted_text(file.id, text):
                flash("success", "Extracted data saved; please review it again")
            st.rerun()

    render_file_nav("digitize")
    back_col, _, submit_col = st.columns([1, 3, 1])
    if back_col.button("Back to anonymization"):
        go_to("anonymize", ss['current_index'])
        st.rerun()
    label = "Modify Case" if session.is_edit_mode else "Create Case"
    if submit_col.button(label, type="primary"):
        decision = proceed_to_submit(session, ss['current_index'])
        if decision.allowed:
            go_to("review")
        else:
            redirect(decision)
        st.rerun()


# ═══════════════════════════════════════════════════════════════════════════════
# STEP 5: REVIEW / SUBMIT
# ═══════════════════════════════════════════════════════════════════════════════

def render_review_step() -> None:
    st.subheader("Review")
    result = validate_submission(session)
    for error in result.errors:
        st.error(error)

    patient = session.current_patient or PatientData()
    st.markdown(f"**{patient.case_name}** · {patient.name}, {patient.age}, {patient.sex} · {patient.cancer_type}")
    for f in session.uploaded_files:
        anon = STATE_BADGES[stage_state(f, Stage.ANONYMIZATION)]
        digit = STATE_BADGES[stage_state(f, Stage.DIGITIZATION)]
        edited = " (edited)" if f.id in session.edited_file_ids else ""
        st.markdown(f"- {f.name}{edited} · anonymization {anon} · digitization {digit}")

    back_col, _, submit_col = st.columns([1, 3, 1])
    if back_col.button("Back"):
        go_to("digitize", len(session.uploaded_files) - 1)
        st.rerun()
    allowed = result.valid and session.is_submission_valid()
    if submit_col.button("Submit", type="primary", disabled=not allowed):
        case_id = session.editing_case_id or f"case_{uuid.uuid4().hex[:8]}"
        ss[CASE_STORE_KEY][case_id] = {
            'patient': dataclasses.replace(patient),
            'files': [dataclasses.asdict(f) for f in session.uploaded_files],
        }
        logger.info("Case %s saved with %d document(s)", case_id, len(session.uploaded_files))
        reset_wizard_state(ss, reason="submitted")
        flash("success", "Case saved")
        st.rerun()


# ═══════════════════════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════════════════════

RENDERERS = {
    "metadata": render_metadata_step,
    "upload": render_upload_step,
    "anonymize": render_anonymize_step,
    "digitize": render_digitize_step,
    "review": render_review_step,
}

header_col, reset_col = st.columns([5, 1])
with header_col:
    step = ss['wizard_step']
    mode = "Modify case" if session.is_edit_mode else "New case"
    st.title("vMTB case documents")
    st.caption(f"{mode} · step {STEPS.index(step) + 1} of {len(STEPS)}: {step}")
with reset_col:
    if st.button("Start over"):
        reset_wizard_state(ss, reason="user")
        st.rerun()

if ss['wizard_step'] in ("metadata", "upload"):
    show_flash()
RENDERERS[ss['wizard_step']]()
