"""Service protocols (interfaces) for the tagging pipeline's collaborators.

Uses typing.Protocol for structural subtyping (duck typing with type safety).
Implementations don't need to inherit; they just need matching methods.
"""

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ai_tagging.services.asset_api import ExternalAsset
    from ai_tagging.services.tagging.taxonomy import TagNode


class TaxonomyProvider(Protocol):
    """Source of a team's tag tree."""

    def fetch_tag_tree(self, team_id: str) -> list["TagNode"]:
        """Root nodes (up to three levels) of the tagging-enabled taxonomy."""
        ...


class LLMClient(Protocol):
    """Structured-output LLM backend."""

    async def generate_structured(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        schema: dict[str, Any],
    ) -> tuple[Any, dict[str, Any]]:
        """Generate output constrained to ``schema``.

        Args:
            system_prompt: Instructions for the model
            messages: Chat messages ({"role", "content"})
            schema: JSON schema the output must follow

        Returns:
            (parsed_object, usage). parsed_object is None when the model
            produced nothing usable.

        Raises:
            LLMError: The backend could not be reached or answered with an
                error. The message names the upstream cause.
        """
        ...


class AssetTaggingAPI(Protocol):
    """External asset-management system."""

    async def apply_tags(
        self,
        team_id: str,
        asset_external_id: str,
        tag_external_ids: list[str],
        append: bool = True,
    ) -> None:
        """Attach tags to an asset. Raises ApplyError on failure."""
        ...

    async def fetch_assets_by_ids(
        self, team_id: str, asset_external_ids: list[str]
    ) -> list["ExternalAsset"]:
        """Fetch assets (with their current tags). Raises ApplyError on failure."""
        ...


class SettingsProvider(Protocol):
    """Team-level tagging settings."""

    def get_tagging_mode(self, team_id: str) -> str:
        """Return "direct" or "review"."""
        ...
