"""
Structural Diff Engine for legal document templates.

This module compares two template versions:
- Volatile row fields (ids, timestamps, flags, version, description) are ignored
- Lists are aligned by identity key (ordinal, id, title, field variable,
  value hash) so a reordered clause does not show up as a delete plus an insert
- Leaf differences are reported as modified; whole subtrees as added/removed
- Each change carries a legal citation ("제7조 제2항 - 내용") resolved
  against the pre-change tree

It also classifies changes by depth to suggest the next semantic version.
"""
import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Any, Optional, Union

from fund_docs.core.config import DIFF_MAX_VALUE_LENGTH
from fund_docs.core.exceptions import TemplateDiffError, ValidationError
from fund_docs.templating.numbering import citation_label
from fund_docs.templating.sections import TemplateContent

logger = logging.getLogger(__name__)

EXCLUDED_FIELDS = (
    "id",
    "created_at",
    "updated_at",
    "is_active",
    "created_by",
    "fund_id",
    "version",
    "description",
    "activated_at",
)

IDENTITY_FIELDS = ("ordinal", "id", "title", "variable", "property")

CHANGE_KINDS = ("added", "removed", "modified")

FIELD_LABELS = {
    "title": "제목",
    "text": "내용",
    "ordinal": "순서",
    "kind": "유형",
    "table_config": "표 설정",
    "table_type": "표 유형",
    "children": "하위 항목",
    "columns": "열",
    "label": "레이블",
    "property": "속성",
    "width": "너비",
    "align": "정렬",
    "header_align": "머리글 정렬",
    "header": "머리글",
    "pages": "면",
    "elements": "요소",
    "fields": "입력 항목",
    "variable": "변수",
    "requires_seal": "날인",
    "condition": "조건",
    "lines": "줄 수",
    "format": "형식",
    "render_kind": "출력 방식",
    "entity_filter": "대상",
    "template_ref": "외부 템플릿",
}

BODY_LABEL = "본문"
APPENDIX_LABEL = "별지"
PATH_SEPARATOR = " → "

NONE_PLACEHOLDER = "(없음)"
EMPTY_STRING_PLACEHOLDER = "(빈 문자열)"
EMPTY_LIST_PLACEHOLDER = "(빈 목록)"
EMPTY_OBJECT_PLACEHOLDER = "(빈 객체)"

PathSegment = Union[str, int]
Path = tuple[PathSegment, ...]

_VERSION_PATTERN = re.compile(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?$")
_SEVERITY_RANK = {"patch": 0, "minor": 1, "major": 2}


@dataclass
class TemplateChange:
    """One difference between two template trees."""
    path: str
    kind: str  # 'added' | 'removed' | 'modified'
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    display_path: str = ""

    @property
    def segments(self) -> Path:
        return parse_path(self.path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "kind": self.kind,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "display_path": self.display_path,
        }


@dataclass
class TemplateDiff:
    """Result of comparing two template versions."""
    from_version: Optional[str]
    to_version: Optional[str]
    changes: list[TemplateChange] = field(default_factory=list)
    summary: dict[str, int] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_version": self.from_version,
            "to_version": self.to_version,
            "changes": [c.to_dict() for c in self.changes],
            "summary": dict(self.summary),
        }


def format_path(segments: Path) -> str:
    return ".".join(str(s) for s in segments)


def parse_path(path: Union[str, Path]) -> Path:
    """Parse "content.sections.2.text" into ('content', 'sections', 2, 'text')."""
    if isinstance(path, tuple):
        return path
    if not path:
        return ()
    return tuple(int(p) if p.isdigit() else p for p in path.split("."))


def sanitize_for_comparison(template: Any) -> Any:
    """Drop row fields that change between versions without changing content, at every depth."""
    if isinstance(template, dict):
        return {k: sanitize_for_comparison(v) for k, v in template.items() if k not in EXCLUDED_FIELDS}
    if isinstance(template, list):
        return [sanitize_for_comparison(item) for item in template]
    return template


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return f"{text[:max_length]}… (총 {len(text)}자 중 {max_length}자 표시)"


def _summarize_section(value: dict[str, Any]) -> Optional[str]:
    # A childless section reads best as its own words
    if "ordinal" in value and not value.get("children"):
        return value.get("title") or value.get("text") or None
    return None


def format_value(value: Any, max_length: int = DIFF_MAX_VALUE_LENGTH) -> str:
    """
    Render a value for change listings.

    None and "" get distinct placeholders. Anything longer than max_length
    is cut with an explicit marker stating the full length.
    """
    if value is None:
        return NONE_PLACEHOLDER
    if isinstance(value, bool):
        return "예" if value else "아니오"
    if isinstance(value, str):
        if value == "":
            return EMPTY_STRING_PLACEHOLDER
        return _truncate(value, max_length)
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list) and not value:
        return EMPTY_LIST_PLACEHOLDER
    if isinstance(value, dict):
        if not value:
            return EMPTY_OBJECT_PLACEHOLDER
        summary = _summarize_section(value)
        if summary is not None:
            return _truncate(summary, max_length)
    return _truncate(json.dumps(value, ensure_ascii=False, indent=2, default=str), max_length)


def _hash_value(value: Any) -> str:
    canonical = json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)
    return hashlib.sha1(canonical.encode("utf-8")).hexdigest()


def identity_key(item: Any) -> tuple:
    """
    Key used to align list elements between versions.

    Sections align by ordinal, other objects by id, title, field variable
    or column property, anything else by a hash of its full value.
    """
    if isinstance(item, dict):
        for name in IDENTITY_FIELDS:
            value = item.get(name)
            if value is None or value == "":
                continue
            if not isinstance(value, (str, int, float, bool)):
                value = _hash_value(value)
            return (name, value)
    return ("hash", _hash_value(item))


def _is_container(value: Any) -> bool:
    return isinstance(value, (dict, list))


def _same_anonymous_kind(old: Any, new: Any, old_key: tuple, new_key: tuple) -> bool:
    # Objects with no identity field (appendix elements) pair up by kind
    return (
        isinstance(old, dict)
        and isinstance(new, dict)
        and old_key[0] == new_key[0] == "hash"
        and old.get("kind") == new.get("kind")
    )


def comparable_tree(template: Any) -> tuple[Optional[str], Optional[str], dict[str, Any]]:
    """
    Normalize a template into (doc_type, version, tree) for comparison.

    Accepts a TemplateRecord-like object (with to_dict()) or a plain dict
    with doc_type/type, version and content. The tree holds only
    {"content": {"sections": ...}, "appendix": [...]}.
    """
    data = template.to_dict() if hasattr(template, "to_dict") else dict(template)
    version = data.get("version")
    data = sanitize_for_comparison(data)

    content = data.get("content") or {}
    if isinstance(content, str):
        content = json.loads(content)
    doc_type = data.get("doc_type") or data.get("type") or content.get("doc_type") or content.get("type")

    if "appendix" not in content and data.get("appendix"):
        content = dict(content, appendix=data["appendix"])

    try:
        normalized = TemplateContent.from_dict(content, doc_type=doc_type).to_dict()
    except ValidationError as e:
        raise TemplateDiffError("Template content cannot be compared", details={"reason": str(e)})

    # to_dict() writes appendix ids back in; drop them again
    tree = sanitize_for_comparison({
        "content": {"sections": normalized["sections"]},
        "appendix": normalized["appendix"],
    })
    return doc_type, version, tree


class TemplateDiffEngine:
    """
    Engine for comparing template versions.

    Produces an ordered change list:
    - modified: leaf value differs (old and new rendered)
    - added: present only in the new tree (new rendered)
    - removed: present only in the old tree (old rendered)
    """

    def __init__(self, max_value_length: int = DIFF_MAX_VALUE_LENGTH):
        """
        Initialize the diff engine.

        Args:
            max_value_length: Rendered values longer than this are truncated
        """
        self.max_value_length = max_value_length

    def compare(self, from_template: Any, to_template: Any) -> TemplateDiff:
        """
        Compare two template versions.

        Args:
            from_template: Older template (TemplateRecord or dict)
            to_template: Newer template (TemplateRecord or dict)

        Returns:
            TemplateDiff with changes in tree order and counts per kind

        Raises:
            TemplateDiffError: If the templates are of different document types
        """
        from_type, from_version, old_tree = comparable_tree(from_template)
        to_type, to_version, new_tree = comparable_tree(to_template)

        if from_type != to_type:
            raise TemplateDiffError(
                "Cannot compare templates of different document types",
                details={"from_type": from_type, "to_type": to_type},
            )

        changes = self.diff_trees(old_tree, new_tree)
        logger.info(
            f"Compared {from_type} {from_version} -> {to_version}: {len(changes)} changes"
        )
        return TemplateDiff(
            from_version=from_version,
            to_version=to_version,
            changes=changes,
            summary=summarize(changes),
        )

    def diff_trees(self, old: Any, new: Any) -> list[TemplateChange]:
        """
        Diff two normalized trees and resolve display paths against the old one.

        Returns:
            Ordered list of TemplateChange (empty when the trees are equal)
        """
        raw: list[tuple[str, Path, Any, Any]] = []
        self._diff_node(old, new, (), raw)

        changes = []
        for kind, path, old_value, new_value in raw:
            added_node = new_value if kind == "added" else None
            changes.append(TemplateChange(
                path=format_path(path),
                kind=kind,
                old_value=None if kind == "added" else format_value(old_value, self.max_value_length),
                new_value=None if kind == "removed" else format_value(new_value, self.max_value_length),
                display_path=resolve_display_path(old, path, added_node=added_node),
            ))
        return changes

    def _diff_node(self, old: Any, new: Any, path: Path, out: list) -> None:
        if old == new and type(old) is type(new):
            return
        if isinstance(old, dict) and isinstance(new, dict):
            self._diff_dict(old, new, path, out)
        elif isinstance(old, list) and isinstance(new, list):
            self._diff_list(old, new, path, out)
        else:
            out.append(("modified", path, old, new))

    def _diff_dict(self, old: dict, new: dict, path: Path, out: list) -> None:
        for key, old_value in old.items():
            if key in new:
                self._diff_node(old_value, new[key], path + (key,), out)
            else:
                out.append(("removed", path + (key,), old_value, None))
        for key, new_value in new.items():
            if key not in old:
                out.append(("added", path + (key,), None, new_value))

    def _diff_list(self, old: list, new: list, path: Path, out: list) -> None:
        old_keys = [identity_key(item) for item in old]
        new_keys = [identity_key(item) for item in new]
        opcodes = SequenceMatcher(None, old_keys, new_keys, autojunk=False).get_opcodes()

        # Pair elements that moved between unaligned blocks by identity key
        unmatched_new: dict[tuple, list[int]] = {}
        for tag, _, _, j1, j2 in opcodes:
            if tag != "equal":
                for j in range(j1, j2):
                    unmatched_new.setdefault(new_keys[j], []).append(j)
        moved: dict[int, int] = {}
        for tag, i1, i2, _, _ in opcodes:
            if tag != "equal":
                for i in range(i1, i2):
                    candidates = unmatched_new.get(old_keys[i])
                    if candidates:
                        moved[i] = candidates.pop(0)
        moved_targets = set(moved.values())

        for tag, i1, i2, j1, j2 in opcodes:
            if tag == "equal":
                for i, j in zip(range(i1, i2), range(j1, j2)):
                    self._diff_node(old[i], new[j], path + (i,), out)
                continue

            for i in range(i1, i2):
                if i in moved:
                    self._diff_node(old[i], new[moved[i]], path + (i,), out)

            rest_old = [i for i in range(i1, i2) if i not in moved]
            rest_new = [j for j in range(j1, j2) if j not in moved_targets]

            # Scalars and anonymous objects replaced in place pair up positionally
            paired_old: set[int] = set()
            paired_new: set[int] = set()
            for i, j in zip(rest_old, rest_new):
                if not _is_container(old[i]) and not _is_container(new[j]):
                    out.append(("modified", path + (i,), old[i], new[j]))
                elif _same_anonymous_kind(old[i], new[j], old_keys[i], new_keys[j]):
                    self._diff_node(old[i], new[j], path + (i,), out)
                else:
                    continue
                paired_old.add(i)
                paired_new.add(j)

            for i in rest_old:
                if i not in paired_old:
                    out.append(("removed", path + (i,), old[i], None))
            for j in rest_new:
                if j not in paired_new:
                    out.append(("added", path + (j,), None, new[j]))


def _field_label(segments: Path) -> str:
    parts = []
    for segment in segments:
        if isinstance(segment, int):
            parts.append(str(segment + 1))
        else:
            parts.append(FIELD_LABELS.get(segment, segment))
    return PATH_SEPARATOR.join(parts)


def _fallback_path(segments: Path) -> str:
    return PATH_SEPARATOR.join([BODY_LABEL] + [str(s) for s in segments])


def _body_display_path(original: dict, segments: Path, added_node: Any) -> str:
    nodes = (original.get("content") or {}).get("sections") or []
    chain: list[tuple[int, Any, Any]] = []
    depth = 0
    position = 2
    trailing_children = False

    while position < len(segments):
        index = segments[position]
        if not isinstance(index, int):
            return _fallback_path(segments)

        is_leaf = position == len(segments) - 1
        if added_node is not None and is_leaf and isinstance(added_node, dict):
            node = added_node
        elif index < len(nodes) and isinstance(nodes[index], dict):
            node = nodes[index]
        else:
            return _fallback_path(segments)

        chain.append((depth, node.get("ordinal"), node.get("title")))
        position += 1

        if position < len(segments) and segments[position] == "children":
            nodes = node.get("children") or []
            depth += 1
            position += 1
            trailing_children = position == len(segments)
            continue
        break

    has_deeper = any(d > 0 for d, _, _ in chain)
    parts = []
    for node_depth, ordinal, title in chain:
        if node_depth == 0 and has_deeper:
            continue
        if isinstance(ordinal, int) and ordinal >= 0:
            parts.append(citation_label(node_depth, ordinal))
        elif title:
            parts.append(title)
    label = " ".join(parts) or BODY_LABEL

    remaining = segments[position:]
    if trailing_children:
        return f"{label} - {FIELD_LABELS['children']}"
    if remaining:
        return f"{label} - {_field_label(remaining)}"
    return label


def _appendix_display_path(original: dict, segments: Path) -> str:
    if len(segments) < 2 or not isinstance(segments[1], int):
        return APPENDIX_LABEL
    index = segments[1]
    appendices = original.get("appendix") or []
    prefix = f"{APPENDIX_LABEL} {index + 1}"

    current: Any = appendices[index] if index < len(appendices) else None
    if isinstance(current, dict) and current.get("title"):
        prefix = f"{prefix} ({current['title']})"

    parts = []
    position = 2
    while position < len(segments):
        segment = segments[position]
        following = segments[position + 1] if position + 1 < len(segments) else None
        if isinstance(following, int) and segment in ("pages", "elements", "fields"):
            child = None
            if isinstance(current, dict):
                items = current.get(segment) or []
                child = items[following] if following < len(items) else None
            if segment == "pages":
                parts.append(f"{following + 1}면")
            elif segment == "elements":
                parts.append(f"요소 {following + 1}")
            elif isinstance(child, dict) and child.get("label"):
                parts.append(child["label"])
            else:
                parts.append(f"항목 {following + 1}")
            current = child
            position += 2
            continue
        parts.append(_field_label(segments[position:]))
        break

    if parts:
        return f"{prefix} - {PATH_SEPARATOR.join(parts)}"
    return prefix


def resolve_display_path(original: dict, path: Union[str, Path], added_node: Any = None) -> str:
    """
    Translate a structural path into a legal citation.

    Walks the pre-change tree, reading each ancestor's ordinal rather than
    its list position. The chapter is omitted when an article or deeper
    level is present; unnumbered nodes contribute their title. For an
    added node, ancestors resolve in the original tree and the node itself
    contributes its own ordinal.

    Args:
        original: Comparison tree of the older version
        path: Structural path ("content.sections.0.children.6.text")
        added_node: The new node when the change is an addition

    Returns:
        Citation such as "제7조 제2항 - 내용" or "별지 1 - 1면 → 요소 2"
    """
    segments = parse_path(path)
    if not segments:
        return BODY_LABEL
    if segments[0] == "appendix":
        return _appendix_display_path(original, segments)
    if segments[:2] == ("content", "sections"):
        if len(segments) == 2:
            return BODY_LABEL
        return _body_display_path(original, segments, added_node)
    return _fallback_path(segments)


def summarize(changes: list[TemplateChange]) -> dict[str, int]:
    """Count changes per kind, plus the total."""
    summary = {kind: 0 for kind in CHANGE_KINDS}
    for change in changes:
        summary[change.kind] = summary.get(change.kind, 0) + 1
    summary["total"] = len(changes)
    return summary


def change_depth(change: TemplateChange) -> Optional[int]:
    """Depth of the section a body change touches, None outside the section tree."""
    segments = change.segments
    if segments[:2] != ("content", "sections") or len(segments) < 3:
        return None
    return sum(1 for s in segments if s == "children")


def classify_change(change: TemplateChange) -> str:
    """
    Severity of a change for version numbering.

    Chapters and articles (depth 0-1) are major, paragraphs (depth 2)
    minor, anything deeper patch. Appendix edits are minor.
    """
    if change.segments[:1] == ("appendix",):
        return "minor"
    depth = change_depth(change)
    if depth is None or depth <= 1:
        return "major"
    if depth == 2:
        return "minor"
    return "patch"


def suggest_next_version(current_version: str, changes: list[TemplateChange]) -> str:
    """
    Suggest the next semantic version for a set of changes.

    Examples:
        >>> suggest_next_version("1.2.3", [])
        '1.2.3'
    """
    match = _VERSION_PATTERN.match((current_version or "").strip())
    if not match:
        raise ValidationError("Version is not numeric", field_name="version", field_value=current_version)
    major, minor, patch = (int(part or 0) for part in match.groups())

    if not changes:
        return f"{major}.{minor}.{patch}"

    severity = max((classify_change(c) for c in changes), key=_SEVERITY_RANK.__getitem__)
    if severity == "major":
        return f"{major + 1}.0.0"
    if severity == "minor":
        return f"{major}.{minor + 1}.0"
    return f"{major}.{minor}.{patch + 1}"


def describe_changes(changes: list[TemplateChange]) -> str:
    """Human-readable change description for a new version's description field."""
    if not changes:
        return "변경 사항 없음"

    kind_labels = {"added": "추가", "removed": "삭제", "modified": "수정"}
    summary = summarize(changes)
    header = ", ".join(f"{kind_labels[k]} {summary[k]}건" for k in CHANGE_KINDS if summary[k])
    lines = [f"변경 사항 {summary['total']}건 ({header})"]
    for change in changes:
        lines.append(f"- [{kind_labels[change.kind]}] {change.display_path}")
    return "\n".join(lines)
