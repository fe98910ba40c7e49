"""Extractors for the four perizia fields"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .confidence import apply_penalty, calculate_confidence
from .keywords import (
    ACT_TYPES,
    ANTECEDENT_ACTS,
    EXPERT_VALUE,
    FIELD_TYPES,
    IRREGULARITIES,
    IRREGULARITY_CATEGORIES,
    LEGAL_COSTS,
    RECENCY_PHRASES,
    REMEDIATION_HINTS,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    VALUE_PRIORITY,
    contains_term,
    normalize_apostrophes,
)
from .models import (
    AntecedentAct,
    Candidate,
    Citation,
    ExpertValue,
    FieldResult,
    FieldStatus,
    Irregularity,
    LegalCost,
    PageText,
    SectionCandidate,
)
from .normalizers import extract_amounts, extract_dates, format_amount
from .section_finder import find_section_candidates

logger = logging.getLogger(__name__)

SNIPPET_CHARS = 300
DESCRIPTION_CHARS = 500
AMOUNT_CONTEXT_CHARS = 100
NO_AMOUNT_COST_PENALTY = 0.1
NO_AMOUNT_VALUE_PENALTY = 0.2
MAX_FIELD_CITATIONS = 5
UNSPECIFIED_VALUE_TYPE = "non specificato"


def make_citation(section: SectionCandidate, snippet_chars: int = SNIPPET_CHARS) -> Citation:
    return Citation(
        page=section.page,
        snippet=section.text[:snippet_chars].strip(),
        start_offset=section.start_offset,
        end_offset=section.end_offset,
    )


def not_found(field_type: str) -> Candidate:
    """The confidence-zero record emitted when a field has no keyword hit"""
    return Candidate(
        value=None,
        confidence=0.0,
        reason=f"Nessun keyword match trovato. Cerca in: {REMEDIATION_HINTS[field_type]}.",
    )


def _keywords(section: SectionCandidate) -> str:
    return ", ".join(section.matched_keywords)


def _lower(section: SectionCandidate) -> str:
    return normalize_apostrophes(section.text.lower())


def extract_antecedent_acts(pages: Sequence[PageText]) -> List[Candidate]:
    """One record per section window: act types mentioned and the first date"""
    sections = find_section_candidates(pages, ANTECEDENT_ACTS)
    if not sections:
        return [not_found(ANTECEDENT_ACTS)]

    results = []
    for section in sections:
        text_lower = _lower(section)
        found_types = [t for t in ACT_TYPES if t in text_lower]
        dates = extract_dates(section.text)

        act = AntecedentAct(
            tipo_atto=", ".join(found_types) if found_types else "Atto generico",
            data=dates[0].normalized if dates else None,
            descrizione=section.text[:DESCRIPTION_CHARS].strip(),
        )
        title_note = " (titolo sezione)" if section.is_title else ""
        results.append(Candidate(
            value=act,
            confidence=calculate_confidence(section, len(sections)),
            reason=f"Keyword match: {_keywords(section)}{title_note}",
            citations=(make_citation(section),),
        ))
    return results


def extract_legal_costs(pages: Sequence[PageText]) -> List[Candidate]:
    """
    One record per amount found in each section window.

    A window without amounts still yields one record, with a lower
    confidence. The recency flag is a plain phrase match on the window.
    """
    sections = find_section_candidates(pages, LEGAL_COSTS)
    if not sections:
        return [not_found(LEGAL_COSTS)]

    results = []
    for section in sections:
        confidence = calculate_confidence(section, len(sections))
        text_lower = _lower(section)
        recent = any(phrase in text_lower for phrase in RECENCY_PHRASES)
        citation = make_citation(section)
        amounts = extract_amounts(section.text)

        if not amounts:
            results.append(Candidate(
                value=LegalCost(
                    descrizione=section.text[:DESCRIPTION_CHARS].strip(),
                    importo=None,
                    ultimi_due_anni=recent,
                ),
                confidence=apply_penalty(confidence, NO_AMOUNT_COST_PENALTY),
                reason=f"Sezione trovata ma nessun importo estratto. Keywords: {_keywords(section)}",
                citations=(citation,),
            ))
            continue

        for amount in amounts:
            start = max(0, amount.start_index - AMOUNT_CONTEXT_CHARS)
            end = min(len(section.text), amount.start_index + len(amount.raw) + AMOUNT_CONTEXT_CHARS)
            results.append(Candidate(
                value=LegalCost(
                    descrizione=section.text[start:end].strip(),
                    importo=amount.value,
                    ultimi_due_anni=recent,
                ),
                confidence=confidence,
                reason=f"Importo trovato: {amount.raw}. Keywords: {_keywords(section)}",
                citations=(citation,),
            ))
    return results


def classify_irregularity(text_lower: str) -> Tuple[str, str, str]:
    """Category, severity and impact of an irregularity description"""
    category = "generica"
    for name, terms in IRREGULARITY_CATEGORIES:
        if any(contains_term(text_lower, term) for term in terms):
            category = name
            break

    if any(term in text_lower for term in SEVERITY_HIGH):
        severity = "alta"
    elif any(term in text_lower for term in SEVERITY_LOW):
        severity = "bassa"
    else:
        severity = "media"

    not_fixable = "non sanabil" in text_lower or "non regolarizzabil" in text_lower
    fixable = "regolarizzabil" in text_lower or "sanabil" in text_lower
    needs_works = any(term in text_lower for term in ("opere", "intervento", "lavori"))
    if not_fixable:
        impact = "Non sanabile"
    elif fixable:
        impact = "Regolarizzabile" + (" (necessita opere)" if needs_works else "")
    elif needs_works:
        impact = "Necessita opere/intervento"
    else:
        impact = "Da verificare"

    return category, severity, impact


def extract_irregularities(pages: Sequence[PageText]) -> List[Candidate]:
    sections = find_section_candidates(pages, IRREGULARITIES)
    if not sections:
        return [not_found(IRREGULARITIES)]

    results = []
    for section in sections:
        category, severity, impact = classify_irregularity(_lower(section))
        amounts = extract_amounts(section.text)
        results.append(Candidate(
            value=Irregularity(
                categoria=category,
                descrizione=section.text[:DESCRIPTION_CHARS].strip(),
                gravita=severity,
                impatto=impact,
                costo_stimato=amounts[0].value if amounts else None,
                stima_presente=bool(amounts),
            ),
            confidence=calculate_confidence(section, len(sections)),
            reason=f"Categoria: {category}. Keywords: {_keywords(section)}",
            citations=(make_citation(section),),
        ))
    return results


def _value_priority(section: SectionCandidate) -> Tuple[int, Optional[str]]:
    text_lower = _lower(section)
    for rank, phrase in enumerate(VALUE_PRIORITY):
        if phrase in text_lower:
            return rank, phrase
    return len(VALUE_PRIORITY), None


def _expert_value_candidate(section: SectionCandidate, total: int) -> Candidate:
    _, value_type = _value_priority(section)
    value_type = value_type or UNSPECIFIED_VALUE_TYPE
    amounts = sorted(extract_amounts(section.text), key=lambda a: a.value, reverse=True)
    dates = extract_dates(section.text)
    confidence = calculate_confidence(section, total)

    primary = amounts[0] if amounts else None
    value = ExpertValue(
        valore=primary.value if primary else None,
        tipo=value_type,
        valore_min=amounts[-1].value if len(amounts) >= 2 else None,
        valore_max=amounts[0].value if len(amounts) >= 2 else None,
        data_contesto=dates[0].normalized if dates else None,
        importi=tuple(a.value for a in amounts),
    )
    if primary is None:
        confidence = apply_penalty(confidence, NO_AMOUNT_VALUE_PENALTY)
    amount_note = f"Importo: {primary.raw}" if primary else "Nessun importo trovato"
    return Candidate(
        value=value,
        confidence=confidence,
        reason=f"Tipo: {value_type}. {amount_note}. Keywords: {_keywords(section)}",
        citations=(make_citation(section),),
    )


def extract_expert_value(pages: Sequence[PageText]) -> List[Candidate]:
    """
    The expert's valuation.

    The window mentioning the highest-priority value phrase is chosen (ties
    go to the better scored window); its largest amount is the value and,
    with two or more amounts, the smallest and largest form the range. The
    chosen record comes first, followed by the other top windows as
    alternatives.
    """
    sections = find_section_candidates(pages, EXPERT_VALUE)
    if not sections:
        return [not_found(EXPERT_VALUE)]

    best_index = min(range(len(sections)), key=lambda i: (_value_priority(sections[i])[0], i))
    order = [best_index] + [i for i in range(min(3, len(sections))) if i != best_index]
    return [_expert_value_candidate(sections[i], len(sections)) for i in order[:3]]


EXTRACTORS = {
    ANTECEDENT_ACTS: extract_antecedent_acts,
    LEGAL_COSTS: extract_legal_costs,
    IRREGULARITIES: extract_irregularities,
    EXPERT_VALUE: extract_expert_value,
}


def summarize_field(field_type: str, candidates: Sequence[Candidate]) -> str:
    """One-line Italian digest of a field's found records"""
    records = [c.value for c in candidates if c.found]
    if not records:
        return candidates[0].reason if candidates else ""

    if field_type == ANTECEDENT_ACTS:
        parts = [r.tipo_atto + (f" del {r.data}" if r.data else "") for r in records]
        return "; ".join(parts)

    if field_type == LEGAL_COSTS:
        amounts = [r.importo for r in records if r.importo is not None]
        recent = any(r.ultimi_due_anni for r in records)
        text = f"{len(amounts)} importi rilevati" if amounts else "Nessun importo rilevato"
        if amounts:
            text += f" (max {format_amount(max(amounts))})"
        if recent:
            text += ", riferimenti agli ultimi due anni"
        return text

    if field_type == IRREGULARITIES:
        return "; ".join(f"{r.categoria} (gravità {r.gravita}, {r.impatto})" for r in records)

    primary = records[0]
    if primary.valore is None:
        return f"Valore non quantificato ({primary.tipo})"
    text = f"{format_amount(primary.valore)} ({primary.tipo})"
    if primary.valore_min is not None:
        text += f", intervallo {format_amount(primary.valore_min)} - {format_amount(primary.valore_max)}"
    return text


def build_field_result(field_type: str, candidates: Sequence[Candidate]) -> FieldResult:
    """
    Aggregate a field's records into {status, confidence, citations, candidates}.

    Confidence is the best record's; citations are the distinct windows the
    records come from, best first.
    """
    found = [c for c in candidates if c.found]
    if not found:
        return FieldResult(
            field=field_type,
            status=FieldStatus.NOT_FOUND,
            confidence=0.0,
            citations=(),
            candidates=tuple(candidates),
            summary=summarize_field(field_type, candidates),
        )

    # The expert value's first record is the chosen one, not necessarily the most confident
    chosen_first = field_type == EXPERT_VALUE
    ordered = found if chosen_first else sorted(found, key=lambda c: -c.confidence)

    citations: List[Citation] = []
    seen = set()
    for candidate in ordered:
        for citation in candidate.citations:
            key = (citation.page, citation.start_offset)
            if key not in seen and len(citations) < MAX_FIELD_CITATIONS:
                seen.add(key)
                citations.append(citation)

    confidence = found[0].confidence if chosen_first else max(c.confidence for c in found)
    return FieldResult(
        field=field_type,
        status=FieldStatus.FOUND,
        confidence=confidence,
        citations=tuple(citations),
        candidates=tuple(candidates),
        summary=summarize_field(field_type, candidates),
    )


def extract_all_fields(pages: Sequence[PageText]) -> Dict[str, FieldResult]:
    """Run the four extractors over the same pages"""
    results = {}
    for field_type in FIELD_TYPES:
        candidates = EXTRACTORS[field_type](pages)
        result = build_field_result(field_type, candidates)
        logger.info("%s: %s (confidence %.2f, %d record(s))", field_type, result.status.value,
                    result.confidence, len(candidates))
        results[field_type] = result
    return results
