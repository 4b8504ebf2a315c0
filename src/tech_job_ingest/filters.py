import re
import unicodedata


class JobFilter:
    """
    Deterministic keyword heuristics over job text: visa sponsorship,
    internship titles, remote work and clearly non-tech roles.

    These are low-confidence signals. The AI enrichment step has the final
    word on every field they touch.

    Handles Unicode stylized text (e.g. mathematical bold 𝗗𝗲𝘃𝗲𝗹𝗼𝗽𝗲𝗿)
    by normalizing to NFKD form before matching.
    """

    SPONSORSHIP_KEYWORDS = [
        "visa sponsorship",
        "work visa",
        "h1b",
        "h-1b",
        "employment visa",
        "sponsor visa",
        "visa support",
        "immigration support",
        "relocation assistance",
        "relocation bonus",
        "moving expenses",
        "relocation package",
        "settling allowance",
        "visa sponsored",
        "visa available",
        "work permit",
    ]

    INTERNSHIP_KEYWORDS = [
        "intern",
        "interns",
        "internship",
        "trainee",
        "graduate program",
        "graduate programme",
        "industrial attachment",
        "siwes",
    ]

    REMOTE_KEYWORDS = [
        "remote",
        "work from home",
        "wfh",
        "telecommute",
    ]

    # Signals a role outside the tech industry when nothing else is known.
    NON_TECH_KEYWORDS = [
        "consulting",
        "consultancy",
        "accountant",
        "cashier",
        "driver",
        "nurse",
        "teacher",
        "receptionist",
        "sales representative",
        "real estate",
        "hospitality",
        "construction",
        "insurance agent",
    ]

    def __init__(self) -> None:
        self.sponsorship_regex = self._compile(self.SPONSORSHIP_KEYWORDS)
        self.internship_regex = self._compile(self.INTERNSHIP_KEYWORDS)
        self.remote_regex = self._compile(self.REMOTE_KEYWORDS)
        self.non_tech_regex = self._compile(self.NON_TECH_KEYWORDS)

    @staticmethod
    def _compile(keywords: list[str]) -> re.Pattern[str]:
        # Whole-word matching so "intern" does not fire on "international"
        pattern = r"\b(?:" + "|".join(re.escape(kw) for kw in keywords) + r")\b"
        return re.compile(pattern, re.IGNORECASE)

    @staticmethod
    def normalize_text(text: str) -> str:
        """
        Normalize Unicode text to NFKD form to convert stylized characters
        to their ASCII equivalents.
        """
        return unicodedata.normalize("NFKD", text)

    def _search(self, regex: re.Pattern[str], *texts: str | None) -> bool:
        return any(text and regex.search(self.normalize_text(text)) for text in texts)

    def mentions_sponsorship(self, *texts: str | None) -> bool:
        """True if any text mentions visa sponsorship or relocation support."""
        return self._search(self.sponsorship_regex, *texts)

    def is_internship_title(self, title: str | None) -> bool:
        return self._search(self.internship_regex, title)

    def looks_remote(self, *texts: str | None) -> bool:
        return self._search(self.remote_regex, *texts)

    def mentions_non_tech(self, *texts: str | None) -> bool:
        return self._search(self.non_tech_regex, *texts)
