# utils/investor.py
import re
from urllib.parse import urlparse

FIRM_SUFFIX_RE = re.compile(r"\s*[-–—|]\s*([^-–—|]+)$")


def extract_investor_name(url: str) -> str:
    """
    Derive investor/fund name from the input portfolio URL.
    Simple heuristic: domain label → Title Case.
    """
    if not url:
        return ""
    net = urlparse(url).netloc or url
    net = net.replace("www.", "")
    label = net.split(".")[0]
    return label.replace("-", " ").replace("_", " ").title()


def _compact(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (text or "").lower())


def _is_firm_suffix(suffix: str, investor_name: str) -> bool:
    firm = _compact(investor_name)
    tail = _compact(suffix)
    if not firm or not tail:
        return False
    if firm in tail or tail in firm:
        return True
    first_word = _compact(suffix.split()[0]) if suffix.split() else ""
    return len(first_word) >= 4 and firm.startswith(first_word)


def clean_investment_name(name: str, investor_name: str = "") -> str:
    """
    Strip a trailing "– <Firm Name>" from page titles such as
    "Acme Robotics – Ironbridge Equity Partners".
    """
    if not name:
        return ""
    name = " ".join(name.split())
    m = FIRM_SUFFIX_RE.search(name)
    if m and investor_name and _is_firm_suffix(m.group(1), investor_name):
        name = name[:m.start()]
    return name.strip()


def title_from_slug(url: str) -> str:
    """/portfolio/acme-robotics/ -> "Acme Robotics"."""
    parts = [p for p in (urlparse(url).path or "").split("/") if p]
    if not parts:
        return ""
    slug = parts[-1]
    return " ".join(w[:1].upper() + w[1:] for w in slug.split("-") if w)
