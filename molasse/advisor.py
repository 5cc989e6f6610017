from __future__ import annotations

import base64
from dataclasses import asdict, dataclass, is_dataclass
from enum import Enum
import json
import logging
import re
from typing import Any, Iterable, Mapping

from google import genai
from google.genai import types

from molasse.config import DEFAULT_ADVISOR_MODEL, DEFAULT_IMAGE_MODEL, DEFAULT_LAB_MODEL, DEFAULT_THINKING_BUDGET


logger = logging.getLogger(__name__)

FALLBACK_ADVICE = "I was unable to synthesize an interpretation at this time."
GEOCHRONOLOGY_KIND = "Geochronology Interpretation"

SYSTEM_INSTRUCTION = (
    "You are Molasse Mentor, an expert geological AI architect and senior sedimentary petrologist.\n"
    "Analyze petrographic data, thin sections, geochemistry, and geochronology from foreland basins.\n"
    "Tone: academic, precise, formal, publication-grade.\n"
    "Always include Tectonic Setting, Basin Position, Unroofing Phase, Depositional Environment, "
    "and Provenance Type in your final interpretation.\n"
    "For Geochronology, correlate U-Pb (crystallization/inheritance) and Ar-Ar (cooling) ages with "
    "specific tectonic cycles and orogenic unroofing sequences."
)

GEOCHRONOLOGY_PROMPT = (
    "As Molasse Mentor, interpret the following geochronology dataset: {payload}.\n"
    "Task:\n"
    "1. Interpret U-Pb and Ar-Ar dating results (with provided uncertainties).\n"
    "2. Correlate ages with orogenic unroofing phases (Sedimentary Cover, Metamorphic Veneer, Crystalline Core).\n"
    "3. Provide precise temporal constraints for major tectonic events "
    "(e.g. onset of collision, peak metamorphism, rapid exhumation).\n"
    "4. Discuss the lag-time if applicable between source cooling and deposition.\n"
    "Output: Publication-style reasoning with a focus on temporal basin dynamics."
)

_DATA_URL = re.compile(r"^data:(?P<mime>[^;,]*)(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)


class AdvisorError(RuntimeError):
    """The AI service call failed."""


@dataclass(frozen=True)
class ImagePayload:
    mime_type: str
    data: bytes

    @classmethod
    def from_data_url(cls, url: str) -> "ImagePayload":
        match = _DATA_URL.match(url.strip())
        if match is None or not match.group("b64"):
            raise ValueError("Expected a base64 data URL.")
        mime_type = match.group("mime") or "image/jpeg"
        return cls(mime_type=mime_type, data=base64.b64decode(match.group("data")))

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str
    image: ImagePayload | None = None


@dataclass(frozen=True)
class GroundedAnswer:
    text: str
    sources: tuple[str, ...] = ()


def create_client(api_key: str) -> genai.Client:
    return genai.Client(api_key=api_key)


def serialize_payload(data: Any) -> Any:
    if is_dataclass(data) and not isinstance(data, type):
        return serialize_payload(asdict(data))
    if isinstance(data, Enum):
        return data.value
    if isinstance(data, Mapping):
        return {str(key): serialize_payload(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [serialize_payload(item) for item in data]
    if isinstance(data, bytes):
        return base64.b64encode(data).decode("ascii")
    return data


def payload_json(kind: str, data: Any) -> str:
    return json.dumps({"type": kind, "data": serialize_payload(data)})


def build_contents(messages: Iterable[ChatMessage], image: ImagePayload | None = None) -> list[types.Content]:
    history = list(messages)
    contents: list[types.Content] = []
    for index, message in enumerate(history):
        parts = [types.Part.from_text(text=message.content)]
        is_last = index == len(history) - 1
        if image is not None and is_last and message.role == "user":
            parts.append(types.Part.from_bytes(data=image.data, mime_type=image.mime_type))
        contents.append(types.Content(role=message.role, parts=parts))
    return contents


def _grounding_sources(response: Any) -> tuple[str, ...]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ()
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    sources: list[str] = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None)
        if uri:
            sources.append(uri)
    return tuple(sources)


def _generate(client: Any, **kwargs: Any) -> Any:
    try:
        return client.models.generate_content(**kwargs)
    except Exception as exc:
        logger.exception("Gemini request to %s failed", kwargs.get("model"))
        raise AdvisorError(str(exc)) from exc


def get_petrological_advice(
    client: Any,
    messages: Iterable[ChatMessage],
    image: ImagePayload | None = None,
    model: str = DEFAULT_ADVISOR_MODEL,
    thinking_budget: int = DEFAULT_THINKING_BUDGET,
) -> str:
    response = _generate(
        client,
        model=model,
        contents=build_contents(messages, image),
        config=types.GenerateContentConfig(
            system_instruction=SYSTEM_INSTRUCTION,
            thinking_config=types.ThinkingConfig(thinking_budget=thinking_budget),
        ),
    )
    return response.text or FALLBACK_ADVICE


def lab_prompt(kind: str, data: Any) -> str:
    payload = json.dumps(serialize_payload(data))
    if kind == GEOCHRONOLOGY_KIND:
        return GEOCHRONOLOGY_PROMPT.format(payload=payload)
    return f"Analyze this {kind} geological data and provide a concise petrological summary: {payload}"


def format_sources(text: str, sources: Iterable[str]) -> str:
    links = "".join(f"\n- [{url}]({url})" for url in sources)
    if not links:
        return text
    return f"{text}\n\n**Sources:**{links}"


def analyze_lab_data(client: Any, kind: str, data: Any, model: str = DEFAULT_LAB_MODEL) -> str:
    response = _generate(
        client,
        model=model,
        contents=lab_prompt(kind, data),
        config=types.GenerateContentConfig(tools=[types.Tool(google_search=types.GoogleSearch())]),
    )
    return format_sources(response.text or "", _grounding_sources(response))


def search_geological_context(client: Any, query: str, model: str = DEFAULT_LAB_MODEL) -> GroundedAnswer:
    response = _generate(
        client,
        model=model,
        contents=query,
        config=types.GenerateContentConfig(tools=[types.Tool(google_search=types.GoogleSearch())]),
    )
    return GroundedAnswer(text=response.text or "", sources=_grounding_sources(response))


def edit_petrographic_image(
    client: Any, image: ImagePayload, prompt: str, model: str = DEFAULT_IMAGE_MODEL
) -> ImagePayload | None:
    response = _generate(
        client,
        model=model,
        contents=[
            types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
            types.Part.from_text(text=prompt),
        ],
    )
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            return ImagePayload(mime_type=inline.mime_type or "image/png", data=inline.data)
    return None
