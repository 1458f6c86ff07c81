"""LLM-backed tag prediction.

Builds the prompt from the team taxonomy and the asset's evidence, asks the
LLM for per-source predictions under a JSON schema, validates the answer and
drops predictions for sources the job disabled.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ai_tagging.core.exceptions import PredictionError
from ai_tagging.db.models import AssetObject
from ai_tagging.schemas.tagging import MatchingSources, RecognitionAccuracy, Source, SourcePrediction
from ai_tagging.services.protocols import LLMClient
from ai_tagging.services.tagging.taxonomy import TagNode, render_tag_keywords, render_tag_structure

logger = logging.getLogger(__name__)

_predictions_adapter = TypeAdapter(list[SourcePrediction])

ACCURACY_GUIDANCE: dict[str, str] = {
    "precise": (
        "Only propose a tag when the evidence names it directly or unambiguously. "
        "Prefer fewer tags and keep confidences conservative."
    ),
    "balanced": (
        "Propose tags with clear supporting evidence. Include reasonable inferences "
        "but not speculative ones."
    ),
    "broad": (
        "Favour recall: also propose tags that are plausible from weaker or indirect "
        "evidence, with correspondingly lower confidence."
    ),
}

SOURCE_DESCRIPTIONS: dict[Source, str] = {
    Source.BASIC_INFO: "the asset file name and description",
    Source.MATERIALIZED_PATH: "the folder path the asset is stored under",
    Source.CONTENT_ANALYSIS: "the AI-generated description of the asset content",
    Source.TAG_KEYWORDS: "the match / exclude keywords configured on tags",
}

PREDICTION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "predictions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "source": {"type": "string", "enum": [s.value for s in Source]},
                    "tags": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "leafTagId": {"type": "integer"},
                                "tagPath": {
                                    "type": "array",
                                    "items": {"type": "string"},
                                    "minItems": 1,
                                    "maxItems": 3,
                                },
                                "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                            },
                            "required": ["leafTagId", "tagPath", "confidence"],
                        },
                    },
                },
                "required": ["source", "tags"],
            },
        }
    },
    "required": ["predictions"],
}


@dataclass
class AssetContext:
    """The asset fields the predictor reads, detached from any session."""

    name: str
    description: str | None = None
    materialized_path: str | None = None
    ai_description: str | None = None

    @classmethod
    def from_model(cls, asset: AssetObject) -> "AssetContext":
        content = json.loads(asset.content_analysis) if asset.content_analysis else {}
        return cls(
            name=asset.name,
            description=asset.description,
            materialized_path=asset.materialized_path,
            ai_description=content.get("ai_description") or content.get("aiDescription"),
        )


def build_system_prompt(
    enabled_sources: set[Source], recognition_accuracy: RecognitionAccuracy
) -> str:
    source_lines = "\n".join(
        f"- {source.value}: {SOURCE_DESCRIPTIONS[source]}"
        for source in Source
        if source in enabled_sources
    )
    return (
        "You are a digital asset management assistant that assigns tags from a fixed "
        "taxonomy.\n\n"
        "Analyse each evidence source independently and, for each one, list the taxonomy "
        "tags it supports. Only use tags that appear in the taxonomy, identified by the "
        "id of the deepest matching level (leafTagId) and the names along the path from "
        "level 1 to that leaf (tagPath, leaf last).\n\n"
        f"Evidence sources:\n{source_lines}\n\n"
        "Confidence is a number between 0 and 1 reflecting how strongly that source alone "
        "supports the tag. Omit a source when it supports no tag. A tag whose exclude "
        "keywords match the asset must not be proposed from tagKeywords.\n\n"
        f"Recognition accuracy ({recognition_accuracy}): "
        f"{ACCURACY_GUIDANCE[recognition_accuracy]}\n\n"
        'Answer with JSON of the form {"predictions": [{"source": ..., "tags": '
        '[{"leafTagId": ..., "tagPath": [...], "confidence": ...}]}]}.'
    )


def build_messages(
    asset: AssetContext, taxonomy: list[TagNode], enabled_sources: set[Source]
) -> list[dict[str, str]]:
    """Taxonomy message first (stable per team), asset evidence second."""
    messages = [
        {"role": "user", "content": f"# Tag taxonomy\n{render_tag_structure(taxonomy)}"}
    ]

    sections = ["# Asset to analyse"]
    if Source.BASIC_INFO in enabled_sources:
        sections.append(
            f"## basicInfo\nFile name: {asset.name}\nDescription: {asset.description or 'none'}"
        )
    if Source.MATERIALIZED_PATH in enabled_sources:
        sections.append(f"## materializedPath\nFolder path: {asset.materialized_path or 'none'}")
    if Source.CONTENT_ANALYSIS in enabled_sources:
        sections.append(
            f"## contentAnalysis\nContent description: {asset.ai_description or 'no content data'}"
        )
    if Source.TAG_KEYWORDS in enabled_sources:
        keywords = render_tag_keywords(taxonomy) or "no tag keywords configured"
        sections.append(f"## tagKeywords\n{keywords}")
    sections.append("Follow the step by step process and output the result.")

    messages.append({"role": "user", "content": "\n\n".join(sections)})
    return messages


class TagPredictor:
    """Predicts taxonomy tags for one asset per call. No cross-call caching."""

    def __init__(self, llm_client: LLMClient):
        self.llm_client = llm_client

    async def predict(
        self,
        asset: AssetContext,
        taxonomy: list[TagNode],
        matching_sources: MatchingSources | None = None,
        recognition_accuracy: RecognitionAccuracy = "balanced",
    ) -> tuple[list[SourcePrediction], dict[str, Any]]:
        """Return per-source predictions and LLM usage metadata.

        Raises:
            PredictionError: The LLM call failed, returned nothing, or returned
                output that does not match the prediction schema.
        """
        enabled = (matching_sources or MatchingSources()).enabled_sources()
        system_prompt = build_system_prompt(enabled, recognition_accuracy)
        messages = build_messages(asset, taxonomy, enabled)

        try:
            parsed, usage = await self.llm_client.generate_structured(
                system_prompt, messages, PREDICTION_SCHEMA
            )
        except Exception as e:
            raise PredictionError(f"Tag prediction failed: {e}") from e

        if parsed is None:
            raise PredictionError("Tag prediction failed: LLM returned no structured object")

        raw = parsed.get("predictions") if isinstance(parsed, dict) else parsed
        try:
            predictions = _predictions_adapter.validate_python(raw)
        except PydanticValidationError as e:
            raise PredictionError(
                f"Tag prediction failed: output does not match schema ({e.error_count()} errors)"
            ) from e

        kept = [p for p in predictions if p.source in enabled]
        if len(kept) != len(predictions):
            logger.info(
                "Dropped predictions from disabled sources",
                extra={"dropped": len(predictions) - len(kept)},
            )
        return kept, usage
