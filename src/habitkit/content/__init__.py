"""Content pipeline — discovery, loading, validation, repair and serving.

Layout of a content directory (FileSystemSourceProvider):
    content/
    ├── habits.json                    # Core habits (required)
    ├── research_articles.json         # Core research (required)
    ├── habits/
    │   └── sleep-habits.json          # Modular habits, category = "sleep"
    ├── research/
    │   ├── sleep-research.json        # Modular research
    │   └── melatonin-timing.md        # One article, YAML frontmatter + markdown body
    └── content-custom/
        └── custom-habits.json         # Local overrides, loaded last

Flow: sources → loader (merge in discovery order) → validator → fixer (optional)
→ manager (cache + queries).
"""
