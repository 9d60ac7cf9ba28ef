"""
Diff engine — preview what an apply would change.

Compares the live template of a stack against the candidate template
structurally (YAML node by node, not line by line) and renders the
result as a compact tree:

    ~ Resources/Service/Properties:
        ~ Cpu: 256 -> 512
        + Memory: 1024
        ~ Environment:
            (1 unchanged item)
            - - Name: DEBUG
            + - Name: TRACE

Rules:
    - A stack that does not exist yet diffs against an empty baseline.
    - Mapping keys are compared in sorted order; sequences are aligned
      on their longest common subsequence.
    - ``Metadata.Manifest`` is ignored: it echoes the raw manifest and
      changes on every whitespace edit.
    - Short-form intrinsic functions (``!Ref X``) equal their long form
      (``Ref: X``).

The diff is a preview, not a gate. Callers decide what to do with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import yaml
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from shipwright.adapters.base import TemplateFetcher
from shipwright.core.errors import StackNotFoundError, TemplateParseError, wrap
from shipwright.core.models.target import DeploymentTarget, DiffResult

logger = logging.getLogger(__name__)

_INDENT = 4
_PREFIX_ADD = "+"
_PREFIX_DEL = "-"
_PREFIX_MOD = "~"
_PREFIX_NONE = " "

_IGNORED_PATHS = {("Metadata", "Manifest")}

_STR_TAG = "tag:yaml.org,2002:str"
_SEQ_TAG = "tag:yaml.org,2002:seq"
_MAP_TAG = "tag:yaml.org,2002:map"


# ═══════════════════════════════════════════════════════════════════
#  Diff tree
# ═══════════════════════════════════════════════════════════════════


@dataclass
class DiffNode:
    """A changed key (or sequence item) in the diff tree.

    Leaves carry the old and new YAML nodes; inner nodes only children.
    A leaf with no old node is an insertion, with no new node a deletion.
    """

    key: str = ""
    children: list[DiffNode | UnchangedItems] = field(default_factory=list)
    old: Node | None = None
    new: Node | None = None
    seq_item: bool = False


@dataclass
class UnchangedItems:
    """A run of sequence items that did not change."""

    count: int


# ═══════════════════════════════════════════════════════════════════
#  Parsing
# ═══════════════════════════════════════════════════════════════════


def _compose(text: str) -> Node | None:
    # compose() keeps unknown tags such as !Ref on the nodes instead of
    # failing the way safe_load() would.
    try:
        return yaml.compose(text, Loader=yaml.SafeLoader)
    except yaml.YAMLError as e:
        raise TemplateParseError(str(e)) from e


def _is_short_form(node: Node | None) -> bool:
    return node is not None and node.tag.startswith("!")


def _is_long_form(node: Node | None) -> bool:
    if not isinstance(node, MappingNode) or len(node.value) != 1:
        return False
    key = node.value[0][0]
    return isinstance(key, ScalarNode) and (key.value == "Ref" or key.value.startswith("Fn::"))


def _to_long_form(node: Node) -> MappingNode:
    """``!GetAtt A.B`` → ``Fn::GetAtt: [A, B]``, ``!Ref X`` → ``Ref: X``."""
    name = node.tag[1:]
    if isinstance(node, ScalarNode):
        value: Node = ScalarNode(_STR_TAG, node.value, style=node.style)
        if name == "GetAtt" and "." in node.value:
            resource, attribute = node.value.split(".", 1)
            value = SequenceNode(
                _SEQ_TAG,
                [ScalarNode(_STR_TAG, resource), ScalarNode(_STR_TAG, attribute)],
                flow_style=True,
            )
    elif isinstance(node, SequenceNode):
        value = SequenceNode(_SEQ_TAG, node.value, flow_style=node.flow_style)
    else:
        value = MappingNode(_MAP_TAG, node.value, flow_style=node.flow_style)
    key = "Ref" if name == "Ref" else f"Fn::{name}"
    return MappingNode(_MAP_TAG, [(ScalarNode(_STR_TAG, key), value)])


def _same_leaf(old: ScalarNode, new: ScalarNode) -> bool:
    return old.value == new.value and old.tag == new.tag


def _parse(old: Node | None, new: Node | None, key: str, path: tuple[str, ...]) -> DiffNode | None:
    if path in _IGNORED_PATHS:
        return None

    if _is_short_form(old) and _is_long_form(new):
        old = _to_long_form(old)
    elif _is_short_form(new) and _is_long_form(old):
        new = _to_long_form(new)

    if old is None or new is None or type(old) is not type(new):
        return DiffNode(key=key, old=old, new=new)

    if isinstance(old, ScalarNode):
        if _same_leaf(old, new):
            return None
        return DiffNode(key=key, old=old, new=new)

    if old.tag != new.tag:
        return DiffNode(key=key, old=old, new=new)

    if isinstance(old, SequenceNode):
        children = _parse_sequence(old.value, new.value, path)
    else:
        children = _parse_mapping(old, new, path)

    if not children:
        return None
    return DiffNode(key=key, children=children)


def _mapping_items(node: MappingNode) -> dict[str, Node]:
    items: dict[str, Node] = {}
    for key_node, value_node in node.value:
        if not isinstance(key_node, ScalarNode):
            raise TemplateParseError(f"unsupported non-scalar mapping key at line {key_node.start_mark.line + 1}")
        items[key_node.value] = value_node
    return items


def _parse_mapping(old: MappingNode, new: MappingNode, path: tuple[str, ...]) -> list[DiffNode | UnchangedItems]:
    old_items, new_items = _mapping_items(old), _mapping_items(new)
    children: list[DiffNode | UnchangedItems] = []
    for key in sorted(set(old_items) | set(new_items)):
        child = _parse(old_items.get(key), new_items.get(key), key, path + (key,))
        if child is not None:
            children.append(child)
    return children


def _lcs(old: list[Node], new: list[Node], path: tuple[str, ...]) -> list[tuple[int, int]]:
    """Index pairs of the longest common subsequence of two sequences."""
    n, m = len(old), len(new)
    equal: dict[tuple[int, int], bool] = {}

    def eq(i: int, j: int) -> bool:
        if (i, j) not in equal:
            equal[(i, j)] = _parse(old[i], new[j], "", path) is None
        return equal[(i, j)]

    lengths = [[0] * (m + 1) for _ in range(n + 1)]
    for i in range(n - 1, -1, -1):
        for j in range(m - 1, -1, -1):
            if eq(i, j):
                lengths[i][j] = lengths[i + 1][j + 1] + 1
            else:
                lengths[i][j] = max(lengths[i + 1][j], lengths[i][j + 1])

    pairs: list[tuple[int, int]] = []
    i = j = 0
    while i < n and j < m:
        if eq(i, j):
            pairs.append((i, j))
            i += 1
            j += 1
        elif lengths[i + 1][j] >= lengths[i][j + 1]:
            i += 1
        else:
            j += 1
    return pairs


def _parse_sequence(old: list[Node], new: list[Node], path: tuple[str, ...]) -> list[DiffNode | UnchangedItems]:
    pairs = _lcs(old, new, path)
    if len(old) == len(new) == len(pairs):
        return []

    children: list[DiffNode | UnchangedItems] = []
    unchanged = 0

    def flush() -> None:
        nonlocal unchanged
        if unchanged:
            children.append(UnchangedItems(count=unchanged))
            unchanged = 0

    i = j = 0
    for li, lj in pairs + [(len(old), len(new))]:
        while i < li or j < lj:
            flush()
            if i < li and j < lj:
                item = _parse(old[i], new[j], "", path)
                if item is not None:
                    item.seq_item = True
                    children.append(item)
                i += 1
                j += 1
            elif i < li:
                children.append(DiffNode(old=old[i], seq_item=True))
                i += 1
            else:
                children.append(DiffNode(new=new[j], seq_item=True))
                j += 1
        if li < len(old):
            unchanged += 1
            i, j = li + 1, lj + 1
    flush()
    return children


def parse_diff(old: str, new: str) -> DiffNode | None:
    """Build the diff tree of ``new`` against ``old``; None when identical."""
    old_root, new_root = _compose(old), _compose(new)
    if old_root is None and new_root is None:
        return None
    return _parse(old_root, new_root, "", ())


# ═══════════════════════════════════════════════════════════════════
#  Rendering
# ═══════════════════════════════════════════════════════════════════


def _marshal(node: Node) -> str:
    text = yaml.serialize(
        node,
        Dumper=yaml.SafeDumper,
        indent=_INDENT,
        width=2**16,
        allow_unicode=True,
    )
    # A bare scalar document ends with an explicit "..." marker.
    if text.endswith("\n...\n"):
        text = text[: -len("\n...\n")]
    return text.rstrip("\n")


def _lines(text: str, prefix: str, indent: int) -> str:
    return "\n".join(f"{' ' * indent}{prefix} {line}" for line in text.split("\n"))


def _keyed(key: str, value: Node) -> MappingNode:
    return MappingNode(_MAP_TAG, [(ScalarNode(_STR_TAG, key), value)])


def _seq(value: Node) -> SequenceNode:
    return SequenceNode(_SEQ_TAG, [value])


class _TreeWriter:
    def __init__(self) -> None:
        self._out: list[str] = []

    def write(self, root: DiffNode) -> str:
        if not root.children:
            # One side of the document is empty, or the root itself changed kind.
            if root.old is not None:
                self._out.append(_lines(_marshal(root.old), _PREFIX_DEL, 0))
            if root.new is not None:
                self._out.append(_lines(_marshal(root.new), _PREFIX_ADD, 0))
        else:
            for child in root.children:
                self._write_node(child, 0)
        return "\n".join(self._out) + "\n"

    def _write_node(self, node: DiffNode | UnchangedItems, indent: int) -> None:
        if isinstance(node, UnchangedItems):
            noun = "item" if node.count == 1 else "items"
            self._out.append(f"{' ' * indent}{_PREFIX_NONE} ({node.count} unchanged {noun})")
            return

        if not node.children:
            self._out.append(self._leaf(node, indent))
            return

        if node.seq_item:
            self._out.append(f"{' ' * indent}{_PREFIX_MOD} - (changed item)")
            last, child_indent = node, indent + 2
        else:
            path, last = node.key, node
            # Collapse keys with a single keyed child into one "A/B/C:" line.
            while len(last.children) == 1:
                peek = last.children[0]
                if isinstance(peek, UnchangedItems) or not peek.children or peek.seq_item:
                    break
                last = peek
                path = f"{path}/{last.key}"
            self._out.append(f"{' ' * indent}{_PREFIX_MOD} {path}:")
            child_indent = indent + _INDENT

        for child in last.children:
            self._write_node(child, child_indent)

    def _leaf(self, node: DiffNode, indent: int) -> str:
        if node.old is None:
            wrapped = _seq(node.new) if node.seq_item else _keyed(node.key, node.new)
            return _lines(_marshal(wrapped), _PREFIX_ADD, indent)
        if node.new is None:
            wrapped = _seq(node.old) if node.seq_item else _keyed(node.key, node.old)
            return _lines(_marshal(wrapped), _PREFIX_DEL, indent)
        label = "-" if node.seq_item else f"{node.key}:"
        return _lines(f"{label} {_marshal(node.old)} -> {_marshal(node.new)}", _PREFIX_MOD, indent)


def diff_templates(old: str, new: str) -> DiffResult:
    """Diff two template documents.

    Raises:
        TemplateParseError: Either document is not valid YAML.
    """
    tree = parse_diff(old, new)
    if tree is None:
        return DiffResult(has_changes=False)
    return DiffResult(has_changes=True, rendered=_TreeWriter().write(tree))


class DiffEngine:
    """Diffs a candidate template against what is deployed for a target."""

    def __init__(self, fetcher: TemplateFetcher):
        self._fetcher = fetcher

    def diff(self, target: DeploymentTarget, stack_name: str, candidate: str) -> DiffResult:
        try:
            live = self._fetcher.template(stack_name)
        except StackNotFoundError:
            logger.debug("Stack %s not deployed yet, diffing against an empty baseline", stack_name)
            live = ""
        except Exception as e:
            raise wrap(e, f"retrieve the deployed template for {target.describe()}") from e

        try:
            return diff_templates(live, candidate)
        except TemplateParseError as e:
            raise wrap(e, f"parse the diff against the deployed {target.describe()}", TemplateParseError) from e
