"""Italian keyword dictionaries for perizia field extraction"""
import re
from typing import Dict, List

ANTECEDENT_ACTS = "antecedent_acts"
LEGAL_COSTS = "legal_costs"
IRREGULARITIES = "irregularities"
EXPERT_VALUE = "expert_value"

FIELD_TYPES = (ANTECEDENT_ACTS, LEGAL_COSTS, IRREGULARITIES, EXPERT_VALUE)

FIELD_LABELS = {
    ANTECEDENT_ACTS: "Atti antecedenti",
    LEGAL_COSTS: "Costi/oneri",
    IRREGULARITIES: "Difformità",
    EXPERT_VALUE: "Valore perito",
}

# Order matters: the first keyword hit on a page opens the window kept
# after deduplication.
FIELD_KEYWORDS: Dict[str, List[str]] = {
    ANTECEDENT_ACTS: [
        "atti antecedenti",
        "atti precedenti",
        "titolo di provenienza",
        "provenienza",
        "formalità pregiudizievoli",
        "atti pregiudizievoli",
        "pregiudizievoli",
        "nota di trascrizione",
        "trascrizione",
        "iscrizione",
        "ipoteca",
        "pignoramento",
        "compravendita",
        "donazione",
        "successione",
        "decreto di trasferimento",
        "atto notarile",
        "servitù",
        "ventennio",
        "visura ipotecaria",
    ],
    LEGAL_COSTS: [
        "oneri e spese",
        "spese a carico",
        "spese condominiali",
        "oneri condominiali",
        "quota condominiale",
        "rate condominiali",
        "aggiudicatario",
        "condominio",
        "arretrate",
        "arretrati",
        "ultimi due anni",
        "ultimi 2 anni",
        "biennio",
        "morosità",
        "tributi",
        "oneri",
        "spese",
    ],
    IRREGULARITIES: [
        "difformità",
        "difforme",
        "non conforme",
        "conformità urbanistica",
        "conformità catastale",
        "conformità edilizia",
        "stato legittimo",
        "abuso edilizio",
        "opere abusive",
        "abuso",
        "sanatoria",
        "condono",
        "permesso di costruire",
        "concessione edilizia",
        "agibilità",
        "abitabilità",
        "irregolarità",
        "variazione catastale",
    ],
    EXPERT_VALUE: [
        "determinazione del valore",
        "valore di stima",
        "valore del perito",
        "valore di perizia",
        "più probabile valore",
        "valore stimato",
        "valore di mercato",
        "valore venale",
        "valore commerciale",
        "prezzo base",
        "base d'asta",
        "prezzo d'asta",
        "perizia di stima",
        "stimato in",
        "valore unitario",
        "quotazioni omi",
        "valutazione",
        "stima",
    ],
}

# Where a reader should look when a field has no keyword hit
REMEDIATION_HINTS = {
    ANTECEDENT_ACTS: "provenienza, titoli, formalità pregiudizievoli, iscrizioni, trascrizioni",
    LEGAL_COSTS: "oneri, spese a carico, costi, arretrati, spese condominiali",
    IRREGULARITIES: "stato legittimo, conformità urbanistica/catastale, agibilità, difformità",
    EXPERT_VALUE: "determinazione del valore, valore di stima, prezzo base, base d'asta",
}

ACT_TYPES = [
    "compravendita",
    "donazione",
    "successione",
    "decreto di trasferimento",
    "pignoramento",
    "ipoteca",
    "servitù",
    "trascrizione",
    "iscrizione",
    "formalità",
    "vincolo",
]

RECENCY_PHRASES = ["ultimi due anni", "ultimi 2 anni", "ultimo biennio"]

# Checked in order, the first bucket with a hit wins
IRREGULARITY_CATEGORIES = [
    ("urbanistica", ["urbanistica", "urbanistico", "permesso di costruire", "dia", "scia", "cila"]),
    ("catastale", ["catastale", "catasto", "planimetria"]),
    ("edilizia", ["edilizia", "edilizio", "abuso edilizio", "opere abusive", "condono"]),
    ("impiantistica", ["impianti", "impiantistica", "certificazione impianti"]),
    ("agibilità", ["agibilità", "abitabilità", "certificato di agibilità"]),
]

SEVERITY_HIGH = ["abuso", "opere abusive", "non sanabile"]
SEVERITY_LOW = ["lieve", "minore", "tolleranza"]

# Highest priority first
VALUE_PRIORITY = [
    "valore di stima",
    "valore di perizia",
    "più probabile valore",
    "valore stimato",
    "valore di mercato",
    "valore venale",
    "valore commerciale",
    "prezzo base",
    "base d'asta",
]

WATERMARK_PATTERNS = [
    "pubblicazione ufficiale",
    "ad uso esclusivo",
    "riproduzione vietata",
    "riproduzione riservata",
    "min. giustizia",
    "ministero della giustizia",
    "aste giudiziarie",
    "uso personale",
    "non cedibile",
    "tribunale di",
]

# Used to rank OCR pages before truncating a payload
OCR_RANKING_KEYWORDS: Dict[str, List[str]] = {
    "valore": ["valore di stima", "prezzo base", "stima", "valore di mercato", "valore venale", "€", "euro"],
    "atti": ["provenienza", "trascrizione", "iscrizione", "ipoteca", "pignoramento", "servitù",
             "ventennio", "pregiudizievoli"],
    "costi": ["spese", "oneri", "condominio", "arretrate", "ultimi due anni", "biennio", "aggiudicatario"],
    "difformita": ["difformità", "abuso", "sanatoria", "stato legittimo", "conformità catastale",
                   "conformità urbanistica", "agibilità"],
}

_SHORT_TERM = 4
_term_patterns: Dict[str, "re.Pattern[str]"] = {}


def contains_term(text_lower: str, term: str) -> bool:
    """Substring test; acronyms of four letters or fewer must match a whole word."""
    if len(term) > _SHORT_TERM:
        return term in text_lower
    pattern = _term_patterns.get(term)
    if pattern is None:
        pattern = re.compile(r"\b" + re.escape(term) + r"\b")
        _term_patterns[term] = pattern
    return pattern.search(text_lower) is not None


def normalize_apostrophes(text: str) -> str:
    """Map typographic apostrophes to ASCII without changing offsets"""
    return text.replace("’", "'").replace("‘", "'")
