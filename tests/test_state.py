from __future__ import annotations

import pytest

from molasse.advisor import ChatMessage, ImagePayload
from molasse.geochron import ingest_ages, make_age_record
from molasse.state import (
    GREETING,
    AddAge,
    AttachImage,
    ClearImage,
    FailRequest,
    IngestAges,
    LabModule,
    ReceiveReply,
    RemoveAge,
    SelectModule,
    SetComposition,
    SubmitMessage,
    initial_state,
    reduce,
)
from molasse.ternary import CompositionSample


def test_initial_state_has_greeting() -> None:
    state = initial_state()
    assert state.active_module is LabModule.QFL
    assert state.messages[0].role == "model"
    assert state.messages[0].content == GREETING
    assert state.ages == ()


def test_reduce_returns_new_snapshots() -> None:
    state = initial_state()
    selected = reduce(state, SelectModule(LabModule.GEOCHRONOLOGY))
    updated = reduce(selected, SetComposition(CompositionSample(45, 15, 40)))

    assert state.active_module is LabModule.QFL
    assert selected.active_module is LabModule.GEOCHRONOLOGY
    assert selected.qfl == CompositionSample()
    assert updated.qfl == CompositionSample(45, 15, 40)


def test_add_remove_and_ingest_ages() -> None:
    record = make_age_record("Zircon", "U-Pb", 500, 5)
    state = reduce(initial_state(), AddAge(record))
    assert state.ages == (record,)

    outcome = ingest_ages(state.ages, "mineral,method,age,error\nBiotite,Ar-Ar,300,3\n,Ar-Ar,,2\n", "csv")
    state = reduce(state, IngestAges(outcome))
    assert [entry.age for entry in state.ages] == [500.0, 300.0]
    assert state.last_notice == "Imported 1 age entries. Skipped 1 malformed rows."

    state = reduce(state, RemoveAge(record.id))
    assert [entry.age for entry in state.ages] == [300.0]


def test_failed_ingest_preserves_ages() -> None:
    record = make_age_record("Zircon", "U-Pb", 500, 5)
    state = reduce(initial_state(), AddAge(record))

    failed = reduce(state, IngestAges(ingest_ages(state.ages, "[broken", "json")))

    assert failed.ages == state.ages
    assert failed.last_notice.startswith("Failed to parse geochronology file")


def test_chat_cycle_and_image_lifecycle() -> None:
    image = ImagePayload(mime_type="image/png", data=b"\x89PNG")
    state = reduce(initial_state(), AttachImage(image))
    state = reduce(state, SubmitMessage(ChatMessage(role="user", content="Interpret this thin section")))
    assert state.is_loading
    assert state.uploaded_image == image

    state = reduce(state, ReceiveReply("Recycled orogen provenance.", clear_image=True))
    assert not state.is_loading
    assert state.uploaded_image is None
    assert [message.role for message in state.messages] == ["model", "user", "model"]

    state = reduce(state, AttachImage(image))
    state = reduce(state, FailRequest("failed"))
    assert state.uploaded_image == image
    assert reduce(state, ClearImage()).uploaded_image is None


def test_dropping_the_image_moves_to_a_fresh_upload_slot() -> None:
    image = ImagePayload(mime_type="image/png", data=b"\x89PNG")
    state = reduce(initial_state(), AttachImage(image))
    assert state.image_slot == 0

    state = reduce(state, SubmitMessage(ChatMessage(role="user", content="Grain shape?")))
    state = reduce(state, ReceiveReply("Subangular quartz.", clear_image=True))
    assert state.uploaded_image is None
    assert state.image_slot == 1

    state = reduce(reduce(state, AttachImage(image)), ClearImage())
    assert state.image_slot == 2

    # A reply without an attached image keeps the current slot.
    state = reduce(state, ReceiveReply("Noted.", clear_image=True))
    assert state.image_slot == 2


def test_unknown_action_raises() -> None:
    with pytest.raises(TypeError):
        reduce(initial_state(), object())
