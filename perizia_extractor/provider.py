"""Operative summary providers, downstream of field extraction"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence

from pydantic import BaseModel, ValidationError

from .config import OPENAI_API_KEY, SUMMARY_MAX_CHARS, SUMMARY_MODEL
from .errors import SchemaInvalid
from .keywords import ANTECEDENT_ACTS, EXPERT_VALUE, IRREGULARITIES, LEGAL_COSTS
from .llm_client import CompletionClient, OpenAICompletionClient
from .models import FieldResult, PageText, field_items
from .normalizers import format_amount
from .ocr import build_ocr_payload
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class OperativeSummary(BaseModel):
    """Three paragraphs: asset and value, risks and costs, acts and actions"""
    paragrafo1: str
    paragrafo2: str
    paragrafo3: str


class SummaryProvider(ABC):
    @abstractmethod
    def summarize(self, fields: Dict[str, FieldResult],
                  pages: Sequence[PageText]) -> OperativeSummary:
        """Build the operative summary from extracted fields and document text"""


def _asset_paragraph(fields: Dict[str, FieldResult]) -> str:
    result = fields[EXPERT_VALUE]
    values = field_items(result)
    if not values or values[0].valore is None:
        return ("Valore del perito: NON RILEVATO. Verificare manualmente nel PDF i capitoli "
                "relativi alla determinazione del valore, stima, o prezzo base.")

    value = values[0]
    parts = [f"Il valore stimato dal perito è {format_amount(value.valore)} ({value.tipo})."]
    if value.valore_min is not None:
        parts.append(f"Range di valori individuato: da {format_amount(value.valore_min)} "
                     f"a {format_amount(value.valore_max)}.")
    if value.data_contesto:
        parts.append(f"Data di riferimento: {value.data_contesto}.")
    if result.citations:
        parts.append(f"(Rif. pag. {result.citations[0].page})")
    return " ".join(parts)


def _risk_paragraph(fields: Dict[str, FieldResult]) -> str:
    lines = []
    irregularities = field_items(fields[IRREGULARITIES])
    if irregularities:
        high = [i.categoria for i in irregularities if i.gravita == "alta"]
        medium = [i.categoria for i in irregularities if i.gravita == "media"]
        if high:
            lines.append(f"ATTENZIONE: {len(high)} difformità di gravità ALTA rilevate: {', '.join(high)}.")
        if medium:
            lines.append(f"{len(medium)} difformità di gravità media: {', '.join(medium)}.")
        for item in irregularities[:3]:
            cost = f" (costi stimati: {format_amount(item.costo_stimato)})" if item.stima_presente else ""
            lines.append(f"- {item.categoria}: {item.descrizione[:150].strip()}{cost}")
    else:
        lines.append("Difformità/abusi: NON RILEVATI nel testo estratto. Verificare manualmente i "
                     "capitoli: conformità urbanistica, catastale, stato legittimo, agibilità.")

    costs = field_items(fields[LEGAL_COSTS])
    if costs:
        amounts = [c.importo for c in costs if c.importo is not None]
        if amounts:
            lines.append(f"Oneri/costi rilevati: {len(costs)} voci per un totale indicativo di "
                         f"{format_amount(sum(amounts))}.")
        else:
            lines.append(f"Oneri/costi: {len(costs)} voci rilevate (importi da verificare).")
        if any(c.ultimi_due_anni for c in costs):
            lines.append('Presente riferimento a "ultimi 2 anni" (spese condominiali arretrate).')
    else:
        lines.append("Costi/oneri: NON RILEVATI. Verificare i capitoli: oneri a carico, "
                     "spese condominiali, arretrati.")
    return "\n".join(lines)


def _action_paragraph(fields: Dict[str, FieldResult]) -> str:
    lines = []
    acts = field_items(fields[ANTECEDENT_ACTS])
    if acts:
        lines.append(f"Atti antecedenti individuati: {len(acts)}.")
        for act in acts[:3]:
            lines.append(f"- {act.tipo_atto}" + (f" ({act.data})" if act.data else ""))
    else:
        lines.append("Atti antecedenti: NON RILEVATI. Verificare: provenienza, formalità "
                     "pregiudizievoli, iscrizioni, trascrizioni.")

    checks = [
        ("Valore del perito individuato", "Verificare il valore di stima/prezzo base nel PDF",
         EXPERT_VALUE),
        ("Difformità individuate, verificarne l'impatto",
         "Controllare conformità urbanistica e catastale", IRREGULARITIES),
        ("Costi/oneri individuati", "Verificare spese condominiali e oneri a carico", LEGAL_COSTS),
        ("Atti antecedenti individuati",
         "Verificare atti di provenienza e formalità pregiudizievoli", ANTECEDENT_ACTS),
    ]
    lines.append("Checklist operativa:")
    for done, todo, field_type in checks:
        lines.append(f"[x] {done}" if field_items(fields[field_type]) else f"[ ] {todo}")
    lines.append("[ ] Confrontare dati estratti con il documento originale")
    return "\n".join(lines)


def deterministic_summary(fields: Dict[str, FieldResult]) -> OperativeSummary:
    return OperativeSummary(
        paragrafo1=_asset_paragraph(fields),
        paragrafo2=_risk_paragraph(fields),
        paragrafo3=_action_paragraph(fields),
    )


class PassthroughProvider(SummaryProvider):
    """Summary built from the extracted fields alone, no external calls"""

    def summarize(self, fields: Dict[str, FieldResult],
                  pages: Sequence[PageText]) -> OperativeSummary:
        return deterministic_summary(fields)


SUMMARY_SYSTEM_PROMPT = (
    "Sei un consulente esperto di aste immobiliari italiane. Genera riassunti operativi "
    "chiari e concisi. Rispondi solo con JSON valido."
)


def build_summary_prompt(fields: Dict[str, FieldResult], document_text: str) -> str:
    fields_json = json.dumps({name: result.to_dict() for name, result in fields.items()},
                             indent=2, ensure_ascii=False)
    return f"""Campi estratti dalla perizia:
{fields_json}

Testo del documento (pagine più rilevanti):
{document_text}

Restituisci un oggetto JSON con esattamente questa struttura:
{{
  "paragrafo1": "<quadro del bene e stima>",
  "paragrafo2": "<rischi, difformità e costi>",
  "paragrafo3": "<atti antecedenti e azioni consigliate>"
}}

Istruzioni:
- Usa solo informazioni presenti nei campi estratti o nel testo
- Cita le pagine quando possibile
- Non inventare importi o date"""


class RemoteProvider(SummaryProvider):
    """Summary written by a completion model and validated against OperativeSummary"""

    def __init__(self, client: CompletionClient, retry_policy: Optional[RetryPolicy] = None,
                 max_chars: int = SUMMARY_MAX_CHARS):
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_chars = max_chars

    def summarize(self, fields: Dict[str, FieldResult],
                  pages: Sequence[PageText]) -> OperativeSummary:
        """
        Raises:
            SchemaInvalid: the model's answer is not the expected JSON object
            CompletionError: the call failed after retries
        """
        document_text = build_ocr_payload(pages, max_chars=self.max_chars)
        raw = self.retry_policy.call(self.client.complete, SUMMARY_SYSTEM_PROMPT,
                                     build_summary_prompt(fields, document_text))
        return parse_summary(raw)


def parse_summary(raw: str) -> OperativeSummary:
    """Validate a model answer; never coerce a malformed one"""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SchemaInvalid([{"msg": f"JSON non valido: {e}"}], raw) from e

    try:
        return OperativeSummary.model_validate(data)
    except ValidationError as e:
        raise SchemaInvalid(e.errors(include_url=False, include_context=False), raw) from e


def make_provider(api_key: Optional[str] = OPENAI_API_KEY) -> SummaryProvider:
    """Remote provider when an API key is configured, passthrough otherwise"""
    if api_key:
        client = OpenAICompletionClient(api_key=api_key, model=SUMMARY_MODEL, json_output=True)
        return RemoteProvider(client)
    logger.info("No OPENAI_API_KEY, using the deterministic summary")
    return PassthroughProvider()
