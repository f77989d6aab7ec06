"""Issue keys in merge request titles and links to the issue tracker."""

import re

_ISSUE_KEY = re.compile(r"[A-Z]+-[0-9]+")


class Issuer:
    """Extract ``ABC-123`` style keys and format tracker URLs from a template.

    The template is a format string with an ``{issue}`` placeholder, e.g.
    ``https://tracker.example.com/browse/{issue}``.
    """

    def __init__(self, url_template: str | None = None) -> None:
        self._template = url_template or None

    def extract_number(self, title: str) -> str | None:
        match = _ISSUE_KEY.search(title or "")
        return match.group(0) if match else None

    def make_url(self, issue_number: str | None) -> str | None:
        if not issue_number or self._template is None:
            return None
        try:
            return self._template.format(issue=issue_number)
        except (KeyError, IndexError, ValueError) as exc:
            raise ValueError(f"invalid issue URL template {self._template!r}: {exc}") from exc
