"""palace — file-anchored repository notes and spatial grid views.

Layout inside a repository:
    <repo>/.palace/
    ├── config.toml                    # Limits + tag enforcement flag
    ├── notes/
    │   └── 2026/10/note-<ts>-<id>.md  # One note per file, YAML frontmatter + body
    ├── tags/
    │   └── <tag>.md                   # Tag description (markdown body)
    ├── views/
    │   └── <view-id>.json             # Grid view documents
    └── overviews/
        └── <view-id>.md               # Generated overviews / session logs
"""

from palace.core import Palace

__all__ = ["Palace"]
