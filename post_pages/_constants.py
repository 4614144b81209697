"""Common literal values used across post_pages.

These constants keep filenames and front-matter keys centralized so the
loader, splitter, generator, and tests can import the same values without
drifting. Intended for internal use within the post_pages package.

Examples
--------
>>> from post_pages import _constants
>>> _constants.POST_FILENAME
'index.md'
>>> sorted(_constants.REQUIRED_FRONT_MATTER_KEYS)
['date', 'title']
"""

POST_FILENAME = "index.md"
COMPONENTS_FILENAME = "components.yaml"
MANIFEST_FILENAME = "posts.json"
NOT_FOUND_FILENAME = "404.html"
FRONT_MATTER_DELIMITER = "---"
REQUIRED_FRONT_MATTER_KEYS = frozenset({"title", "date"})
TOC_LEVELS = frozenset({2, 3})
DEFAULT_DATE_FORMAT = "%Y/%m/%d"
FALLBACK_SLUG = "section"
