"""Unified diff synthesis from two blob texts.

Lines are aligned strictly by position, not by content: inserting one line
at the top of a file renders every following line as a remove/add pair.
Only one hunk header is written per file, on the first divergence, and its
counts are the full line counts of both sides.
"""

from __future__ import annotations


def synthesize(path: str, original: str, modified: str) -> str:
    """Build a unified-diff text for ``path`` from its two versions.

    Either text may be empty (pure add or delete). Never raises.
    """
    out = [f"--- a{path}", f"+++ b{path}"]
    if not original and not modified:
        return "\n".join(out) + "\n"

    original_lines = original.split("\n")
    modified_lines = modified.split("\n")
    in_hunk = False

    for i in range(max(len(original_lines), len(modified_lines))):
        orig_line = original_lines[i] if i < len(original_lines) else None
        mod_line = modified_lines[i] if i < len(modified_lines) else None

        if orig_line == mod_line:
            out.append(f" {orig_line}")
            continue

        if not in_hunk:
            in_hunk = True
            out.append(f"@@ -{i + 1},{len(original_lines)} +{i + 1},{len(modified_lines)} @@")
        if orig_line is not None:
            out.append(f"-{orig_line}")
        if mod_line is not None:
            out.append(f"+{mod_line}")

    return "\n".join(out) + "\n"
