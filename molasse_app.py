from __future__ import annotations

import html
import sys
from pathlib import Path

import pandas as pd
import streamlit as st

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from molasse.advisor import (
    GEOCHRONOLOGY_KIND,
    AdvisorError,
    ChatMessage,
    analyze_lab_data,
    create_client,
    get_petrological_advice,
    payload_json,
    serialize_payload,
)
from molasse.config import PALETTE, Settings, configure_logging, load_settings
from molasse.geochron import (
    METHODS,
    MINERALS,
    ingest_ages,
    make_age_record,
    records_to_frame,
    summarize_ages,
)
from molasse.io import (
    AGE_EXTENSIONS,
    IMAGE_EXTENSIONS,
    POINT_COUNT_EXTENSIONS,
    ingest_uploaded_ages,
    read_uploaded_image,
    read_uploaded_table,
)
from molasse.plot import build_age_figure, build_qfl_figure
from molasse.samples import sample_age_csv, sample_age_json, sample_qfl_data
from molasse.state import (
    ADVICE_FAILURE,
    FRAMEWORK_MODULES,
    LAB_FAILURE,
    LAB_MODULES,
    AddAge,
    AppState,
    AttachImage,
    ClearImage,
    FailRequest,
    IngestAges,
    LabModule,
    ReceiveReply,
    RemoveAge,
    SelectModule,
    SetComposition,
    SetGeochem,
    SubmitMessage,
    initial_state,
    reduce,
)
from molasse.ternary import REGIONAL_CASES, CompositionSample, normalize_sample, plot_point, prepare_qfl_data
from molasse.weathering import GeochemData, calculate_cia, classify_weathering


STATE_KEY = "molasse_state"
UNROOFING_PHASES = [
    "Phase 1 – Sedimentary Cover",
    "Phase 2 – Metamorphic Veneer",
    "Phase 3 – Crystalline Core",
]


def _to_csv_bytes(frame: pd.DataFrame) -> bytes:
    return frame.to_csv(index=False).encode("utf-8")


def _apply_theme() -> None:
    st.markdown(
        f"""
        <style>
        :root {{
            --molasse-bg: {PALETTE["background"]};
            --molasse-sidebar: {PALETTE["sidebar"]};
            --molasse-primary: {PALETTE["primary"]};
            --molasse-accent: {PALETTE["accent"]};
            --molasse-text: {PALETTE["text"]};
            --molasse-success: {PALETTE["success"]};
            --molasse-warning: {PALETTE["warning"]};
        }}

        [data-testid="stAppViewContainer"] {{
            background-color: var(--molasse-bg);
        }}

        [data-testid="stHeader"] {{
            background: transparent;
        }}

        .main * {{
            color: var(--molasse-text);
        }}

        [data-testid="stSidebar"] {{
            background-color: var(--molasse-sidebar);
            border-right: 1px solid rgba(245, 158, 11, 0.2);
        }}

        [data-testid="stSidebar"] * {{
            color: #e7e5e4;
        }}

        div.stButton > button,
        div.stDownloadButton > button {{
            background-color: var(--molasse-primary);
            color: #0c0a09;
            border: 1px solid var(--molasse-primary);
            border-radius: 8px;
            font-weight: 600;
        }}

        div.stButton > button:hover,
        div.stDownloadButton > button:hover {{
            background-color: var(--molasse-accent);
            border-color: var(--molasse-accent);
        }}

        [data-testid="stMetric"] {{
            background: #1c1917;
            border: 1px solid rgba(245, 158, 11, 0.2);
            border-radius: 10px;
            padding: 0.75rem;
        }}

        .molasse-alert {{
            border-radius: 8px;
            padding: 0.7rem 0.9rem;
            margin: 0.25rem 0 0.75rem 0;
            font-weight: 600;
        }}

        .molasse-alert.success {{
            background-color: rgba(5, 150, 105, 0.12);
            border-left: 0.4rem solid var(--molasse-success);
        }}

        .molasse-alert.warning {{
            background-color: rgba(234, 88, 12, 0.12);
            border-left: 0.4rem solid var(--molasse-warning);
        }}
        </style>
        """,
        unsafe_allow_html=True,
    )


def _render_status(kind: str, message: str) -> None:
    if kind not in {"success", "warning"}:
        raise ValueError(f"Unsupported status kind: {kind}")
    safe = html.escape(message)
    st.markdown(f"<div class='molasse-alert {kind}'>{safe}</div>", unsafe_allow_html=True)


def _init_state() -> None:
    if STATE_KEY not in st.session_state:
        st.session_state[STATE_KEY] = initial_state()


def _state() -> AppState:
    return st.session_state[STATE_KEY]


def _dispatch(action: object) -> AppState:
    new_state = reduce(_state(), action)
    st.session_state[STATE_KEY] = new_state
    return new_state


@st.cache_resource(show_spinner=False)
def _get_client(api_key: str):
    return create_client(api_key)


def _settings() -> Settings:
    try:
        secrets = dict(st.secrets)
    except FileNotFoundError:
        secrets = {}
    return load_settings(secrets=secrets)


def _run_lab_analysis(settings: Settings, kind: str, data: object) -> None:
    _dispatch(
        SubmitMessage(
            ChatMessage(
                role="user",
                content=f"[Auto-Analysis Trigger] Analyzing {kind} data: {payload_json(kind, data)}",
            )
        )
    )
    if not settings.has_api_key:
        _dispatch(FailRequest("No Gemini API key configured. Set GEMINI_API_KEY to enable the advisor."))
        return
    try:
        with st.spinner(f"Analyzing {kind}..."):
            reply = analyze_lab_data(_get_client(settings.api_key), kind, data, model=settings.lab_model)
    except AdvisorError:
        _dispatch(FailRequest(LAB_FAILURE))
    else:
        _dispatch(ReceiveReply(reply))


def _render_sidebar(settings: Settings) -> None:
    with st.sidebar:
        st.title("Molasse Mentor")
        st.caption("Foreland basin provenance & orogenic unroofing")

        st.subheader("Laboratory Suite")
        for module in LAB_MODULES:
            if st.button(module.value, key=f"nav_{module.name}", use_container_width=True):
                _dispatch(SelectModule(module))

        st.subheader("Tectonic Framework")
        for module in FRAMEWORK_MODULES:
            if st.button(module.value, key=f"nav_{module.name}", use_container_width=True):
                _dispatch(SelectModule(module))

        st.subheader("Regional Cases")
        for case in REGIONAL_CASES:
            with st.expander(f"{case.name} ({case.region})", expanded=False):
                st.caption(case.description)
                st.write(f"Q {case.qfl.q:.0f} / F {case.qfl.f:.0f} / L {case.qfl.l:.0f}")
                if st.button("Analyze case", key=f"case_{case.name}"):
                    _run_lab_analysis(settings, "Regional Reference", case)

        st.divider()
        st.caption(f"Active module: {_state().active_module.value}")
        if settings.has_api_key:
            st.caption(f"Advisor: {settings.advisor_model}")
        else:
            st.warning("GEMINI_API_KEY is not set. Advisor calls are disabled.")


def _render_qfl_panel(settings: Settings) -> None:
    state = _state()
    st.subheader("Dickinson QFL Plotter")

    q_col, f_col, l_col = st.columns(3)
    with q_col:
        q = st.number_input("Q", min_value=0.0, value=float(state.qfl.q), step=1.0, key="qfl_q")
    with f_col:
        f = st.number_input("F", min_value=0.0, value=float(state.qfl.f), step=1.0, key="qfl_f")
    with l_col:
        l = st.number_input("L", min_value=0.0, value=float(state.qfl.l), step=1.0, key="qfl_l")

    sample = CompositionSample(q, f, l)
    if sample != state.qfl:
        state = _dispatch(SetComposition(sample))

    normalized = normalize_sample(state.qfl)
    point = plot_point(normalized)
    points = pd.DataFrame(
        [
            {
                "sample_id": "Sample",
                "q_pct": normalized.q_pct,
                "f_pct": normalized.f_pct,
                "l_pct": normalized.l_pct,
                "plot_x": point.x,
                "plot_y": point.y,
            }
        ]
    )
    if normalized.total == 0.0:
        points = points.iloc[0:0]
    st.plotly_chart(build_qfl_figure(points, colors=PALETTE), use_container_width=True)
    st.caption(
        f"Normalized: Q:{normalized.q_pct:.1f}% F:{normalized.f_pct:.1f}% L:{normalized.l_pct:.1f}%"
    )

    if st.button("Analyze Provenance", type="primary", key="qfl_analyze"):
        _run_lab_analysis(settings, "Dickinson QFL", state.qfl)

    with st.expander("Batch point-count table", expanded=False):
        st.download_button(
            "Download sample QFL table",
            data=_to_csv_bytes(sample_qfl_data()),
            file_name="molasse_sample_qfl.csv",
            mime="text/csv",
            key="dl_sample_qfl",
        )
        use_sample = st.checkbox("Use regional reference cases", value=False, key="qfl_use_sample")
        batch: pd.DataFrame | None = None
        if use_sample:
            batch = sample_qfl_data()
        else:
            uploaded = st.file_uploader(
                "Upload point counts",
                type=[ext.lstrip(".") for ext in POINT_COUNT_EXTENSIONS],
                key="qfl_upload",
            )
            if uploaded is not None:
                try:
                    batch = read_uploaded_table(uploaded.name, uploaded.getvalue())
                except Exception as exc:
                    st.error(f"Failed to read file: {exc}")

        if batch is not None:
            try:
                batch_points = prepare_qfl_data(batch)
            except ValueError as exc:
                st.info(str(exc))
            else:
                st.plotly_chart(
                    build_qfl_figure(batch_points, colors=PALETTE, title="QFL Batch"),
                    use_container_width=True,
                )
                st.dataframe(batch_points, use_container_width=True, hide_index=True)


def _render_cia_panel(settings: Settings) -> None:
    state = _state()
    st.subheader("Chemical Index of Alteration (CIA)")

    current = serialize_payload(state.geochem)
    values: dict[str, float] = {}
    cols = st.columns(2)
    for idx, oxide in enumerate(["al2o3", "cao", "na2o", "k2o"]):
        with cols[idx % 2]:
            values[oxide] = st.number_input(
                f"{oxide.upper()} (wt%)", min_value=0.0, value=float(current[oxide]), step=0.1, key=f"cia_{oxide}"
            )
    with st.expander("Trace elements (ppm)", expanded=False):
        trace_cols = st.columns(4)
        for idx, element in enumerate(["th", "sc", "la", "zr"]):
            with trace_cols[idx]:
                values[element] = st.number_input(
                    element.capitalize(), min_value=0.0, value=float(current[element]), step=1.0, key=f"cia_{element}"
                )

    geochem = GeochemData(**values)
    if geochem != state.geochem:
        state = _dispatch(SetGeochem(geochem))

    basis = st.radio("Basis", options=["weight", "molar"], horizontal=True, key="cia_basis")
    cia = calculate_cia(state.geochem, basis=basis)
    metric_a, metric_b = st.columns(2)
    with metric_a:
        st.metric("Calculated CIA", f"{cia:.1f}")
    with metric_b:
        st.metric("Weathering", classify_weathering(cia))

    if st.button("Interpret Weathering", type="primary", key="cia_analyze"):
        payload = {**serialize_payload(state.geochem), "cia": cia}
        _run_lab_analysis(settings, "CIA and Weathering", payload)


def _render_geochronology_panel(settings: Settings) -> None:
    state = _state()
    st.subheader("Geochronology Suite")

    with st.form("age_entry", clear_on_submit=True):
        m_col, t_col = st.columns(2)
        with m_col:
            mineral = st.selectbox("Mineral", options=list(MINERALS), index=0)
        with t_col:
            method = st.selectbox("Method", options=list(METHODS), index=0)
        a_col, e_col = st.columns(2)
        with a_col:
            age = st.number_input("Age (Ma)", min_value=0.0, value=0.0, step=1.0)
        with e_col:
            error = st.number_input("± Error", min_value=0.0, value=0.0, step=0.1)
        if st.form_submit_button("Add Age Entry"):
            record = make_age_record(mineral, method, age, error)
            if record is None:
                st.info("Age and error must both be positive.")
            else:
                state = _dispatch(AddAge(record))

    uploaded = st.file_uploader(
        "Import CSV/JSON (mineral, method, age, error)",
        type=[ext.lstrip(".") for ext in AGE_EXTENSIONS],
        key="age_upload",
    )
    if uploaded is not None and st.button("Import file", key="age_import"):
        state = _dispatch(IngestAges(ingest_uploaded_ages(state.ages, uploaded.name, uploaded.getvalue())))

    with st.expander("Sample Data Box", expanded=False):
        st.download_button(
            "Download sample age CSV",
            data=sample_age_csv().encode("utf-8"),
            file_name="molasse_sample_ages.csv",
            mime="text/csv",
            key="dl_sample_age_csv",
        )
        st.download_button(
            "Download sample age JSON",
            data=sample_age_json().encode("utf-8"),
            file_name="molasse_sample_ages.json",
            mime="application/json",
            key="dl_sample_age_json",
        )
        if st.button("Load sample ages", key="age_load_sample"):
            state = _dispatch(IngestAges(ingest_ages(state.ages, sample_age_csv(), "csv")))

    if state.last_notice:
        if state.last_notice.startswith("Failed"):
            st.error(state.last_notice)
        else:
            _render_status("success", state.last_notice)

    if state.ages:
        frame = records_to_frame(state.ages)
        st.dataframe(frame.drop(columns=["id"]), use_container_width=True, hide_index=True)

        labels = {
            record.id: f"{record.mineral} {record.method} {record.age:.1f} ± {record.error:.2f} Ma"
            for record in state.ages
        }
        remove_col, button_col = st.columns([4, 1])
        with remove_col:
            to_remove = st.selectbox(
                "Remove entry", options=list(labels), format_func=labels.get, key="age_remove_choice"
            )
        with button_col:
            if st.button("Remove", key="age_remove"):
                state = _dispatch(RemoveAge(to_remove))
                st.rerun()

        summary = summarize_ages(state.ages)
        if summary is not None:
            st.caption(
                f"Correlation Preview: {summary.count} data points spanning {summary.min_age:.1f} to "
                f"{summary.max_age:.1f} Ma. Potential correlation with {summary.correlation}."
            )
        st.plotly_chart(build_age_figure(state.ages, colors=PALETTE), use_container_width=True)
        st.download_button(
            "Download age table",
            data=_to_csv_bytes(frame),
            file_name="molasse_ages.csv",
            mime="text/csv",
            key="dl_ages",
        )

    if st.button("Correlate Orogeny", type="primary", disabled=not state.ages, key="age_analyze"):
        _run_lab_analysis(settings, GEOCHRONOLOGY_KIND, list(state.ages))


def _render_orogenic_panel(settings: Settings) -> None:
    st.subheader("Unroofing Phase Estimation")
    for idx, phase in enumerate(UNROOFING_PHASES):
        if st.button(phase, key=f"phase_{idx}", use_container_width=True):
            _run_lab_analysis(settings, "Orogenic Unroofing", {"phase": phase})


def _render_basins_panel(settings: Settings) -> None:
    st.subheader("Regional Cases")
    points = prepare_qfl_data(sample_qfl_data())
    st.plotly_chart(build_qfl_figure(points, colors=PALETTE, title="Reference Foreland Basins"), use_container_width=True)
    for case in REGIONAL_CASES:
        st.markdown(f"**{case.name}**, {case.region}")
        st.caption(case.description)
        if st.button(f"Analyze {case.name}", key=f"basin_{case.name}"):
            _run_lab_analysis(settings, "Regional Reference", case)


def _render_import_panel(module: LabModule) -> None:
    st.subheader(f"Import {module.value} Data")
    st.caption("Upload CSV, XLSX, or paste raw tabular data for automated petrological extraction.")
    uploaded = st.file_uploader(
        "Choose Data File",
        type=[ext.lstrip(".") for ext in POINT_COUNT_EXTENSIONS],
        key=f"import_{module.name}",
    )
    if uploaded is not None:
        try:
            frame = read_uploaded_table(uploaded.name, uploaded.getvalue())
        except Exception as exc:
            st.error(f"Failed to read file: {exc}")
        else:
            _render_status("success", f"Loaded {uploaded.name} with {len(frame)} rows.")
            st.dataframe(frame.head(20), use_container_width=True, hide_index=True)


def _render_lab(settings: Settings) -> None:
    module = _state().active_module
    if module is LabModule.QFL:
        _render_qfl_panel(settings)
    elif module is LabModule.CIA:
        _render_cia_panel(settings)
    elif module is LabModule.GEOCHRONOLOGY:
        _render_geochronology_panel(settings)
    elif module is LabModule.OROGENIC:
        _render_orogenic_panel(settings)
    elif module is LabModule.BASINS:
        _render_basins_panel(settings)
    else:
        _render_import_panel(module)


def _render_chat(settings: Settings) -> None:
    st.subheader("Petrological Advisor")
    st.caption("Multimodal Suite Active")

    for message in _state().messages:
        with st.chat_message("assistant" if message.role == "model" else "user"):
            st.markdown(message.content)

    image_file = st.file_uploader(
        "Attach thin-section image",
        type=[ext.lstrip(".") for ext in IMAGE_EXTENSIONS],
        key=f"chat_image_{_state().image_slot}",
    )
    if image_file is not None and _state().uploaded_image is None:
        try:
            _dispatch(AttachImage(read_uploaded_image(image_file.name, image_file.getvalue(), image_file.type)))
        except ValueError as exc:
            st.error(str(exc))

    state = _state()
    if state.uploaded_image is not None:
        st.image(state.uploaded_image.data, width=160)
        if st.button("Remove image", key="chat_clear_image"):
            _dispatch(ClearImage())
            st.rerun()

    prompt = st.chat_input("Ask for petrological reasoning or provenance interpretation...")
    if prompt is None:
        return
    if not prompt.strip() and state.uploaded_image is None:
        return

    image = state.uploaded_image
    state = _dispatch(SubmitMessage(ChatMessage(role="user", content=prompt)))
    if not settings.has_api_key:
        _dispatch(FailRequest("No Gemini API key configured. Set GEMINI_API_KEY to enable the advisor."))
        st.rerun()
    try:
        with st.spinner("Synthesizing interpretation..."):
            reply = get_petrological_advice(
                _get_client(settings.api_key),
                state.messages,
                image=image,
                model=settings.advisor_model,
                thinking_budget=settings.thinking_budget,
            )
    except AdvisorError:
        _dispatch(FailRequest(ADVICE_FAILURE))
    else:
        _dispatch(ReceiveReply(reply, clear_image=True))
    st.rerun()


def main() -> None:
    st.set_page_config(page_title="Molasse Mentor", layout="wide")
    settings = _settings()
    configure_logging(settings.log_level)
    _init_state()
    _apply_theme()

    _render_sidebar(settings)

    st.title("Molasse Mentor")
    st.caption("Petrographic, geochemical and geochronological interpretation for foreland basins")

    lab_col, chat_col = st.columns([1, 1])
    with lab_col:
        _render_lab(settings)
    with chat_col:
        _render_chat(settings)


if __name__ == "__main__":
    main()
