"""Shared fixtures: a small perizia, in-memory PDFs and fake completion clients."""
import re

import fitz
import pytest

from perizia_extractor.llm_client import CompletionClient
from perizia_extractor.models import PageText, ParsedDocument
from perizia_extractor.retry import RetryPolicy
from perizia_extractor.text_extractor import TextExtractionChain, TextExtractor

PAGE_INTRO = (
    "RELAZIONE DEL CONSULENTE TECNICO D'UFFICIO\n"
    "Procedura esecutiva immobiliare n. 123/2020 promossa da Banca Esempio contro Mario Bianchi.\n"
    "Il sottoscritto ingegnere Luca Verdi, nominato esperto dal giudice dell'esecuzione, ha eseguito "
    "il sopralluogo in data 12/05/2023 alla presenza del custode giudiziario. L'unità oggetto della "
    "procedura è un appartamento al terzo piano di un edificio residenziale in via Appia Nuova 10, "
    "Roma, composto da ingresso, soggiorno, cucina abitabile, due camere e un bagno, con cantina "
    "pertinenziale al piano interrato."
)

PAGE_ACTS = (
    "CAPITOLO 4 - ATTI ANTECEDENTI E PROVENIENZA\n"
    "L'immobile è pervenuto all'esecutato con atto di compravendita del 15/03/2010 a rogito del "
    "notaio Paolo Rossi di Roma, repertorio n. 4521. Sul bene grava ipoteca volontaria a favore "
    "della banca creditrice, iscritta il 20 marzo 2010 a garanzia di un mutuo fondiario. Non "
    "risultano ulteriori gravami di natura reale sul bene pignorato nel periodo esaminato dal "
    "sottoscritto."
)

PAGE_IRREGULARITIES = (
    "CONFORMITÀ URBANISTICA\n"
    "Dal confronto tra lo stato dei luoghi e la planimetria depositata sono emerse difformità: la "
    "veranda sul balcone risulta realizzata senza permesso di costruire. Le difformità sono "
    "regolarizzabili con una pratica in sanatoria, per un costo previsto di € 5.000,00 comprensivo "
    "di sanzione e compenso del tecnico incaricato."
)

PAGE_COSTS = (
    "SPESE CONDOMINIALI\n"
    "Spese condominiali arretrate ultimi due anni: € 3.450,00\n"
    "L'amministratore dello stabile ha comunicato che la quota ordinaria annua ammonta a circa "
    "€ 1.200,00 e che l'aggiudicatario risponde in solido con il debitore per le somme dell'anno "
    "in corso e di quello precedente, ai sensi della normativa vigente."
)

PAGE_VALUE = (
    "DETERMINAZIONE DEL VALORE\n"
    "Applicando il metodo sintetico comparativo, il più probabile valore di mercato dell'immobile "
    "è pari a € 185.000,00 alla data del 10/01/2024.\n"
    "Tenuto conto dello stato d'uso e dell'assenza di garanzia per vizi, il prezzo base d'asta "
    "viene fissato in € 160.000,00."
)

PAGE_PLAIN = (
    "Il presente capitolo contiene soltanto una descrizione generica del quartiere, dei negozi e "
    "dei collegamenti con il centro cittadino disponibili nelle vicinanze dell'edificio."
)


class StaticTextExtractor(TextExtractor):
    """Returns the same document for any input"""

    name = "static"

    def __init__(self, document: ParsedDocument):
        self.document = document

    def extract(self, pdf_bytes: bytes) -> ParsedDocument:
        return self.document


class FakeCompletionClient(CompletionClient):
    """Records calls and answers through ``responder`` (a string, an exception or a callable)"""

    def __init__(self, responder):
        self.responder = responder
        self.calls = []

    def complete(self, system_prompt, user_content, images=None):
        self.calls.append((system_prompt, user_content, list(images or [])))
        if isinstance(self.responder, BaseException):
            raise self.responder
        if callable(self.responder):
            return self.responder(system_prompt, user_content, images)
        return self.responder


def pages_in_prompt(user_content: str):
    """Page numbers an OCR prompt asks for, in image order"""
    return [int(n) for n in dict.fromkeys(re.findall(r"Pagina (\d+)", user_content))]


@pytest.fixture
def mock_pages():
    return [
        PageText(page=1, text=PAGE_INTRO),
        PageText(page=3, text=PAGE_ACTS),
        PageText(page=5, text=PAGE_IRREGULARITIES),
        PageText(page=7, text=PAGE_COSTS),
        PageText(page=9, text=PAGE_VALUE),
    ]


@pytest.fixture
def plain_pages():
    return [PageText(page=1, text=PAGE_PLAIN), PageText(page=2, text=PAGE_PLAIN)]


@pytest.fixture
def static_chain():
    """Chain whose only engine returns the given pages"""
    def make(pages, total_pages=None):
        document = ParsedDocument(pages=tuple(pages),
                                  total_pages=total_pages if total_pages is not None else len(pages))
        return TextExtractionChain(extractors=[StaticTextExtractor(document)])
    return make


@pytest.fixture
def fake_client():
    return FakeCompletionClient


@pytest.fixture
def no_wait_policy():
    """Retry policy that records its sleeps instead of sleeping"""
    sleeps = []
    policy = RetryPolicy(max_retries=3, base_delay=2.0, jitter=0, sleep=sleeps.append)
    policy.sleeps = sleeps
    return policy


@pytest.fixture
def make_pdf():
    """Build an in-memory PDF, one page per entry; each entry is a list of lines"""
    def build(pages):
        doc = fitz.open()
        for lines in pages:
            page = doc.new_page()
            y = 72
            for line in lines:
                page.insert_text((72, y), line, fontsize=10)
                y += 14
        data = doc.tobytes()
        doc.close()
        return data
    return build
