"""
Static book metadata: canonical order, names, testaments.
Book IDs are USFM codes (GEN, EXO, ..., REV).
"""

from typing import Dict, List, NamedTuple, Optional


class BookEntry(NamedTuple):
    book_id: str
    name: str
    testament: str


# Protestant canon, 66 books.
BOOK_ORDER: List[BookEntry] = [
    # OT - Pentateuch
    BookEntry("GEN", "Genesis", "OT"),
    BookEntry("EXO", "Exodus", "OT"),
    BookEntry("LEV", "Leviticus", "OT"),
    BookEntry("NUM", "Numbers", "OT"),
    BookEntry("DEU", "Deuteronomy", "OT"),
    # OT - Historical
    BookEntry("JOS", "Joshua", "OT"),
    BookEntry("JDG", "Judges", "OT"),
    BookEntry("RUT", "Ruth", "OT"),
    BookEntry("1SA", "1 Samuel", "OT"),
    BookEntry("2SA", "2 Samuel", "OT"),
    BookEntry("1KI", "1 Kings", "OT"),
    BookEntry("2KI", "2 Kings", "OT"),
    BookEntry("1CH", "1 Chronicles", "OT"),
    BookEntry("2CH", "2 Chronicles", "OT"),
    BookEntry("EZR", "Ezra", "OT"),
    BookEntry("NEH", "Nehemiah", "OT"),
    BookEntry("EST", "Esther", "OT"),
    # OT - Poetic
    BookEntry("JOB", "Job", "OT"),
    BookEntry("PSA", "Psalms", "OT"),
    BookEntry("PRO", "Proverbs", "OT"),
    BookEntry("ECC", "Ecclesiastes", "OT"),
    BookEntry("SNG", "Song of Solomon", "OT"),
    # OT - Major Prophets
    BookEntry("ISA", "Isaiah", "OT"),
    BookEntry("JER", "Jeremiah", "OT"),
    BookEntry("LAM", "Lamentations", "OT"),
    BookEntry("EZK", "Ezekiel", "OT"),
    BookEntry("DAN", "Daniel", "OT"),
    # OT - Minor Prophets
    BookEntry("HOS", "Hosea", "OT"),
    BookEntry("JOL", "Joel", "OT"),
    BookEntry("AMO", "Amos", "OT"),
    BookEntry("OBA", "Obadiah", "OT"),
    BookEntry("JON", "Jonah", "OT"),
    BookEntry("MIC", "Micah", "OT"),
    BookEntry("NAM", "Nahum", "OT"),
    BookEntry("HAB", "Habakkuk", "OT"),
    BookEntry("ZEP", "Zephaniah", "OT"),
    BookEntry("HAG", "Haggai", "OT"),
    BookEntry("ZEC", "Zechariah", "OT"),
    BookEntry("MAL", "Malachi", "OT"),
    # NT - Gospels and Acts
    BookEntry("MAT", "Matthew", "NT"),
    BookEntry("MRK", "Mark", "NT"),
    BookEntry("LUK", "Luke", "NT"),
    BookEntry("JHN", "John", "NT"),
    BookEntry("ACT", "Acts", "NT"),
    # NT - Pauline Epistles
    BookEntry("ROM", "Romans", "NT"),
    BookEntry("1CO", "1 Corinthians", "NT"),
    BookEntry("2CO", "2 Corinthians", "NT"),
    BookEntry("GAL", "Galatians", "NT"),
    BookEntry("EPH", "Ephesians", "NT"),
    BookEntry("PHP", "Philippians", "NT"),
    BookEntry("COL", "Colossians", "NT"),
    BookEntry("1TH", "1 Thessalonians", "NT"),
    BookEntry("2TH", "2 Thessalonians", "NT"),
    BookEntry("1TI", "1 Timothy", "NT"),
    BookEntry("2TI", "2 Timothy", "NT"),
    BookEntry("TIT", "Titus", "NT"),
    BookEntry("PHM", "Philemon", "NT"),
    # NT - General Epistles
    BookEntry("HEB", "Hebrews", "NT"),
    BookEntry("JAS", "James", "NT"),
    BookEntry("1PE", "1 Peter", "NT"),
    BookEntry("2PE", "2 Peter", "NT"),
    BookEntry("1JN", "1 John", "NT"),
    BookEntry("2JN", "2 John", "NT"),
    BookEntry("3JN", "3 John", "NT"),
    BookEntry("JUD", "Jude", "NT"),
    # NT - Apocalyptic
    BookEntry("REV", "Revelation", "NT"),
]

BOOK_INDEX: Dict[str, int] = {b.book_id: i for i, b in enumerate(BOOK_ORDER)}

# Books some translations (e.g. WEBU) ship outside the 66-book canon.
EXTRA_BOOK_NAMES: Dict[str, str] = {
    "TOB": "Tobit",
    "JDT": "Judith",
    "ESG": "Additions to Esther",
    "WIS": "Wisdom of Solomon",
    "SIR": "Sirach",
    "BAR": "Baruch",
    "DAG": "Daniel (Greek)",
    "1MA": "1 Maccabees",
    "2MA": "2 Maccabees",
    "3MA": "3 Maccabees",
    "4MA": "4 Maccabees",
    "1ES": "1 Esdras",
    "2ES": "2 Esdras",
    "MAN": "Prayer of Manasseh",
    "PS2": "Psalm 151",
}

DEUTERO_BOOKS = frozenset({
    "TOB", "JDT", "ESG",   # Tobit, Judith, Esther Greek
    "WIS", "SIR",          # Wisdom, Sirach
    "BAR", "LJE",          # Baruch, Letter of Jeremiah
    "S3Y", "SUS", "BEL",   # Additions to Daniel
    "1MA", "2MA",          # 1-2 Maccabees
    "1ES", "2ES",          # 1-2 Esdras
    "MAN", "PS2",          # Prayer of Manasseh, Psalm 151
    "3MA", "4MA",          # 3-4 Maccabees
})

# Lower-cased English names -> book ID, for user input like "genesis".
BOOK_ID_ALIASES: Dict[str, str] = {
    **{b.name.lower(): b.book_id for b in BOOK_ORDER},
    **{name.lower(): book_id for book_id, name in EXTRA_BOOK_NAMES.items()},
    "psalm": "PSA",
    "song of songs": "SNG",
}


def normalize_book_id(book_id: Optional[str]) -> Optional[str]:
    """Normalize a book ID or English book name to its USFM code."""
    if book_id is None:
        return None
    cleaned = book_id.strip()
    if not cleaned:
        return ""
    return BOOK_ID_ALIASES.get(cleaned.lower(), cleaned.upper())
