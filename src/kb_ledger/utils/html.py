"""HTML to text conversion for fetched pages."""

from bs4 import BeautifulSoup


def html_to_text(html: str) -> tuple[str | None, str]:
    """Return (title, readable text) for an HTML document."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()

    title = soup.title.get_text(" ", strip=True) if soup.title else None
    body = soup.body or soup
    lines = [line.strip() for line in body.get_text("\n").splitlines()]
    return title or None, "\n".join(line for line in lines if line)
