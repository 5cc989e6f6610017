"""Session state for the Streamlit UI.

Every user action is a small frozen dataclass. ``reduce`` turns the current
snapshot plus one action into a new snapshot; snapshots are never mutated.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from molasse.advisor import ChatMessage, ImagePayload
from molasse.geochron import AgeRecord, IngestOutcome, append_records, remove_record
from molasse.ternary import CompositionSample
from molasse.weathering import GeochemData


GREETING = (
    "Greetings. I am Molasse Mentor. I have initialized my multimodal analysis suite. "
    "You may now upload thin-section screenshots, PDF reports, or geochemical datasets (CSV/JSON) "
    "for integrated petrological interpretation."
)
ADVICE_FAILURE = "An error occurred during interpretation. Please check your data inputs."
LAB_FAILURE = "Laboratory analysis failed. Ensure data formats are correct."


class LabModule(str, Enum):
    XRD = "XRD"
    XRF = "XRF"
    ICPMS = "ICP-MS"
    DTA = "DTA"
    CIA = "CIA Calculator"
    QFL = "Petrographic Plotter"
    OROGENIC = "Orogenic Framework"
    BASINS = "Regional Cases"
    GEOCHRONOLOGY = "Geochronology"


LAB_MODULES = (
    LabModule.XRD,
    LabModule.XRF,
    LabModule.ICPMS,
    LabModule.DTA,
    LabModule.CIA,
    LabModule.GEOCHRONOLOGY,
)
FRAMEWORK_MODULES = (LabModule.QFL, LabModule.OROGENIC, LabModule.BASINS)


@dataclass(frozen=True)
class AppState:
    active_module: LabModule = LabModule.QFL
    messages: tuple[ChatMessage, ...] = ()
    is_loading: bool = False
    uploaded_image: ImagePayload | None = None
    # Incremented each time the attached image is dropped; keys the image uploader.
    image_slot: int = 0
    qfl: CompositionSample = CompositionSample()
    geochem: GeochemData = GeochemData()
    ages: tuple[AgeRecord, ...] = ()
    last_notice: str | None = None


@dataclass(frozen=True)
class SelectModule:
    module: LabModule


@dataclass(frozen=True)
class SetComposition:
    sample: CompositionSample


@dataclass(frozen=True)
class SetGeochem:
    data: GeochemData


@dataclass(frozen=True)
class AddAge:
    record: AgeRecord


@dataclass(frozen=True)
class RemoveAge:
    record_id: str


@dataclass(frozen=True)
class IngestAges:
    outcome: IngestOutcome


@dataclass(frozen=True)
class AttachImage:
    image: ImagePayload


@dataclass(frozen=True)
class ClearImage:
    pass


@dataclass(frozen=True)
class SubmitMessage:
    message: ChatMessage


@dataclass(frozen=True)
class ReceiveReply:
    content: str
    clear_image: bool = False


@dataclass(frozen=True)
class FailRequest:
    content: str


def initial_state() -> AppState:
    return AppState(messages=(ChatMessage(role="model", content=GREETING),))


def _ingest_notice(outcome: IngestOutcome) -> str:
    if outcome.error is not None:
        return f"Failed to parse geochronology file: {outcome.error}"
    result = outcome.result
    accepted = result.accepted_count if result is not None else 0
    skipped = result.skipped_count if result is not None else 0
    notice = f"Imported {accepted} age entries."
    if skipped:
        notice += f" Skipped {skipped} malformed rows."
    return notice


def reduce(state: AppState, action: object) -> AppState:
    if isinstance(action, SelectModule):
        return replace(state, active_module=action.module)
    if isinstance(action, SetComposition):
        return replace(state, qfl=action.sample)
    if isinstance(action, SetGeochem):
        return replace(state, geochem=action.data)
    if isinstance(action, AddAge):
        return replace(state, ages=append_records(state.ages, [action.record]))
    if isinstance(action, RemoveAge):
        return replace(state, ages=remove_record(state.ages, action.record_id))
    if isinstance(action, IngestAges):
        # A failed ingestion carries the unchanged collection.
        ages = state.ages if action.outcome.error is not None else action.outcome.records
        return replace(state, ages=ages, last_notice=_ingest_notice(action.outcome))
    if isinstance(action, AttachImage):
        return replace(state, uploaded_image=action.image)
    if isinstance(action, ClearImage):
        return replace(state, uploaded_image=None, image_slot=state.image_slot + 1)
    if isinstance(action, SubmitMessage):
        return replace(state, messages=state.messages + (action.message,), is_loading=True)
    if isinstance(action, ReceiveReply):
        reply = ChatMessage(role="model", content=action.content)
        state = replace(state, messages=state.messages + (reply,), is_loading=False)
        if action.clear_image and state.uploaded_image is not None:
            return reduce(state, ClearImage())
        return state
    if isinstance(action, FailRequest):
        reply = ChatMessage(role="model", content=action.content)
        return replace(state, messages=state.messages + (reply,), is_loading=False)
    raise TypeError(f"Unsupported action: {type(action).__name__}")
