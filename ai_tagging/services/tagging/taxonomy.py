"""Team tag taxonomy loading and prompt rendering."""

import json
from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from ai_tagging.db.models import AssetTag
from ai_tagging.db.repositories.asset import MAX_TAG_DEPTH, AssetTagRepository


@dataclass
class TagNode:
    id: int
    name: str
    keywords: list[str] = field(default_factory=list)
    negative_keywords: list[str] = field(default_factory=list)
    children: list["TagNode"] = field(default_factory=list)


def _json_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    value = json.loads(raw)
    return [str(v) for v in value] if isinstance(value, list) else []


def build_tag_tree(tags: list[AssetTag]) -> list[TagNode]:
    """Assemble flat tag rows into a forest of at most MAX_TAG_DEPTH levels.

    Rows whose parent is missing (or disabled, so absent from ``tags``) are
    dropped along with their subtree.
    """
    nodes = {
        tag.id: TagNode(
            id=tag.id,
            name=tag.name,
            keywords=_json_list(tag.keywords),
            negative_keywords=_json_list(tag.negative_keywords),
        )
        for tag in tags
    }
    children: dict[int, list[int]] = {}
    roots: list[int] = []
    for tag in tags:
        if tag.parent_id is None:
            roots.append(tag.id)
        else:
            children.setdefault(tag.parent_id, []).append(tag.id)

    def attach(node_id: int, depth: int) -> TagNode:
        node = nodes[node_id]
        if depth < MAX_TAG_DEPTH:
            node.children = [attach(child, depth + 1) for child in children.get(node_id, [])]
        return node

    return [attach(root, 1) for root in roots]


class DatabaseTaxonomyProvider:
    """TaxonomyProvider backed by the asset_tags table.

    Takes a session factory so each call uses its own short-lived session.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def fetch_tag_tree(self, team_id: str) -> list[TagNode]:
        db = self.session_factory()
        try:
            return build_tag_tree(AssetTagRepository(db).list_enabled(team_id))
        finally:
            db.close()


def render_tag_structure(tree: list[TagNode]) -> str:
    """Render the taxonomy with ids, one line per node, indented by level."""
    lines: list[str] = []
    for level1 in tree:
        lines.append(f"Level 1 (id: {level1.id}): {level1.name}")
        for level2 in level1.children:
            lines.append(f"  └─ Level 2 (id: {level2.id}): {level2.name}")
            for level3 in level2.children:
                lines.append(f"      └─ Level 3 (id: {level3.id}): {level3.name}")
    return "\n".join(lines)


def render_tag_keywords(tree: list[TagNode]) -> str:
    """Render keyword hints for tags that define any. Empty string if none do."""
    lines: list[str] = []

    def visit(node: TagNode, level: int) -> None:
        indent = "  " * (level - 1)
        if node.keywords:
            lines.append(f"{indent}Tag: {node.name} (id: {node.id})")
            lines.append(f"{indent}  Match keywords: {', '.join(node.keywords)}")
            if node.negative_keywords:
                lines.append(f"{indent}  Exclude keywords: {', '.join(node.negative_keywords)}")
        for child in node.children:
            visit(child, level + 1)

    for root in tree:
        visit(root, 1)
    return "\n".join(lines)
