"""Hierarchical branch labels.

Labels alternate numeric and alphabetic segments by depth:

    1            root
    1.a, 1.b     children of "1"
    1.a.1, 1.a.2 children of "1.a"
    1.a.1.a      child of "1.a.1"

A parent ending in a letter numbers its children from 1; any other parent
letters its children from "a". Past "z" the letters extend the way
spreadsheet columns do: 26 -> "aa", 27 -> "ab", ..., 702 -> "aaa".
"""

import string
from typing import Mapping, Optional

from services.models import Node

ROOT_LABEL = "1"


def sibling_letter(index: int) -> str:
    """Return the letter segment for the index-th child (0 -> "a").

    Bijective base-26:
    0 -> "a", 25 -> "z", 26 -> "aa", 51 -> "az", 52 -> "ba"
    """
    if index < 0:
        raise ValueError(f"Sibling index must be non-negative, got {index}")

    letters = ""
    n = index + 1
    while n > 0:
        n, remainder = divmod(n - 1, 26)
        letters = string.ascii_lowercase[remainder] + letters
    return letters


def child_label(parent_label: str, sibling_count: int) -> str:
    """Label for a new child of a node that already has sibling_count children."""
    if parent_label and parent_label[-1] in string.ascii_lowercase:
        return f"{parent_label}.{sibling_count + 1}"
    return f"{parent_label}.{sibling_letter(sibling_count)}"


def generate_label(parent_id: Optional[str], nodes: Mapping[str, Node]) -> str:
    """Compute the label for a node about to be created under parent_id.

    Raises:
        KeyError: If parent_id is not in nodes
    """
    if parent_id is None:
        return ROOT_LABEL

    if parent_id not in nodes:
        raise KeyError(f"Parent node not found: {parent_id}")

    parent = nodes[parent_id]
    return child_label(parent.hierarchical_label, len(parent.child_ids))
