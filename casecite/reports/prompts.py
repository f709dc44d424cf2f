"""Prompt assembly for case reports. Pure: reads inputs, returns text."""

from casecite.core.models import CaseDocument, FocusFlags
from casecite.literature.models import CitationCandidate, ResolvedLiteratureItem

TRUNCATION_MARKER = "\n\n[Truncated for AI prompt]"
NO_TEXT_PLACEHOLDER = "[No extracted text available]"
NO_DOCUMENTS_PLACEHOLDER = "No medical expert opinions or case documents were found in this case."
NO_FOCUS_PLACEHOLDER = "No focus points selected"
NO_NARRATIVE_PLACEHOLDER = "No focus text provided."
NO_RESOLVED_PLACEHOLDER = "No relevant articles were located automatically."
NO_UNRESOLVED_PLACEHOLDER = "No citations require further verification."
RESOLUTION_FAILED_PLACEHOLDER = (
    "Automatic literature lookup failed. Run a manual search to cross-check the cited sources."
)
UNATTRIBUTED_SOURCE = "Unattributed citations"

FOCUS_FLAG_LABELS: dict[str, str] = {
    "negligence": "Negligence",
    "causation": "Causation",
    "life_expectancy": "Life expectancy / damages",
}

EXPERT_OPINION_KEYWORDS = (
    "חוות",
    "חוו\"ד",
    "מומח",
    "expert",
    "opinion",
    "report",
    "expertise",
)

SPECIALTY_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("אונקול", "oncolog"), "Oncology"),
    (("רדיולוג", "radiolog"), "Radiology"),
    (("כירורג", "surgery", "surgeon"), "Surgery"),
    (("גסטרו", "gastro"), "Gastroenterology"),
    (("פתולוג", "patholog"), "Pathology"),
]
UNKNOWN_SPECIALTY = "Specialty not identified"

DEPTH_HINTS = {
    "deep": "in-depth and fully detailed",
    "concise": "high, despite the request for brevity",
}


# ── Building Blocks ──────────────────────────────────────────────────


def truncate_for_prompt(text: str | None, limit: int) -> str:
    """Cap text at ``limit`` characters and mark the cut explicitly."""
    if not text:
        return NO_TEXT_PLACEHOLDER
    if len(text) <= limit:
        return text
    return f"{text[:limit]}{TRUNCATION_MARKER}"


def describe_focus_flags(flags: FocusFlags) -> str:
    labels = [FOCUS_FLAG_LABELS.get(name, name) for name in flags.enabled()]
    return ", ".join(labels) if labels else NO_FOCUS_PLACEHOLDER


def describe_focus_narrative(text: str | None) -> str:
    return text.strip() if text and text.strip() else NO_NARRATIVE_PLACEHOLDER


def is_likely_expert_opinion(doc: CaseDocument) -> bool:
    """Filename heuristic for expert opinions among the case documents."""
    filename = doc.original_filename.lower()
    return any(keyword in filename for keyword in EXPERT_OPINION_KEYWORDS)


def infer_expert_specialty(filename: str) -> str:
    normalized = filename.lower()
    for keywords, specialty in SPECIALTY_KEYWORDS:
        if any(k in normalized for k in keywords):
            return specialty
    return UNKNOWN_SPECIALTY


def build_document_block(docs: list[CaseDocument], limit: int) -> str:
    """One block per expert opinion, each with its text capped at ``limit``."""
    if not docs:
        return NO_DOCUMENTS_PLACEHOLDER
    blocks = []
    for index, doc in enumerate(docs, 1):
        blocks.append(
            "\n".join(
                [
                    f"Expert opinion {index}: {doc.original_filename}",
                    f"Estimated specialty: {infer_expert_specialty(doc.original_filename)}",
                    f"Document ID: {doc.id}",
                    "Extracted text (read closely and use it directly in the analysis):",
                    truncate_for_prompt(doc.extracted_text, limit),
                ]
            )
        )
    return "\n\n".join(blocks)


def build_comparison_document_block(
    label: str, doc: CaseDocument, text: str, limit: int
) -> str:
    return "\n".join(
        [
            f"Expert opinion {label} ({doc.original_filename})",
            f"ID: {doc.id}",
            f"Estimated specialty: {infer_expert_specialty(doc.original_filename)}",
            "Main claims and data:",
            truncate_for_prompt(text, limit),
        ]
    )


def format_resolved_references(items: list[ResolvedLiteratureItem]) -> str:
    """Resolved items grouped by the document that cited them.

    Groups appear in order of first citation; numbering runs across groups.
    Fields a provider did not return are left out.
    """
    if not items:
        return NO_RESOLVED_PLACEHOLDER

    groups: dict[str, list[tuple[int, ResolvedLiteratureItem]]] = {}
    for number, item in enumerate(items, 1):
        source = item.matched_citation.source_document_name or UNATTRIBUTED_SOURCE
        groups.setdefault(source, []).append((number, item))

    sections = []
    for source, numbered in groups.items():
        entries = [_format_reference(number, item) for number, item in numbered]
        sections.append(f"Cited in: {source}\n" + "\n\n".join(entries))
    return "\n\n".join(sections)


def _format_reference(number: int, item: ResolvedLiteratureItem) -> str:
    lines = [
        f"Source {number}: {item.title}",
        f"Authors: {', '.join(item.authors)}" if item.authors else None,
        f"Journal: {item.journal}" if item.journal else None,
        f"Year: {item.year}" if item.year else None,
        f"Abstract: {item.abstract}" if item.abstract else None,
        f"Link: {item.url}" if item.url else None,
    ]
    return "\n".join(line for line in lines if line)


def format_unresolved_citations(items: list[CitationCandidate]) -> str:
    """Raw citation lines that no provider matched, for manual follow-up."""
    if not items:
        return NO_UNRESOLVED_PLACEHOLDER
    lines = []
    for index, item in enumerate(items, 1):
        doc = f" ({item.source_document_name})" if item.source_document_name else ""
        lines.append(f"Citation {index}{doc} [needs manual verification]: {item.raw_text}")
    return "\n".join(lines)


# ── Report Prompts ───────────────────────────────────────────────────


def build_initial_report_prompt(
    *,
    case_name: str,
    owner: str,
    focus_summary: str,
    focus_narrative: str,
    document_block: str,
    literature_text: str,
    unresolved_text: str,
    depth: str = "deep",
    language: str = "Hebrew",
) -> str:
    """Deep analysis of the plaintiff's expert opinions for the defense expert."""
    sections = [
        "Medical expert opinion analysis: maximum depth, prepared for the defense.",
        "",
        "Goal: break down and analyse every claim of the plaintiff's expert(s) down "
        "to the level of evidence, compare it against current literature, and produce "
        "a detailed report for the defense expert. Use factual medical language only.",
        "",
        "Case frame:",
        f"- Case name: {case_name}",
        f"- Owner: {owner}",
        f"- Selected focus points: {focus_summary}",
        f"- Free-form focus text: {focus_narrative}",
        "",
        "Available expert opinions (address each one separately and refer to it by "
        "name throughout the report):",
        document_block,
        "",
        "Literature located automatically (integrate it into the review or explain "
        "why it does not fit):",
        literature_text,
        "",
        "Unverified citations:",
        unresolved_text,
        "",
        "### Work stages (in order):",
        "1. **Stage A: claim mapping.** For each plaintiff expert list their claims as "
        "bullets, each ending with `[Source: opinion name / page]`.",
        "2. **Stage B: timeline and clinical facts.** Build a detailed chronology "
        "(history, complaints, tests, treatments, pathology results, delays) and "
        "highlight critical time windows.",
        "3. **Stage C: cross-check claims against the record.** For every bullet, state "
        "whether the documents support it, whether other documents contradict it, and "
        "its pathophysiological or diagnostic meaning.",
        "4. **Stage D: cited literature.** Check whether the articles the expert cites "
        "say what the expert claims. Add recent sources (last 10-15 years) and state "
        "for each whether it supports or contradicts the claim.",
        "5. **Stage E: disputed issues and search terms.** Derive the disputed medical "
        "issues and propose search terms for each.",
        "6. **Stage F: final report in the mandatory structure below.**",
        "",
        "### Mandatory report structure:",
        "# Expert analysis and medical literature review",
        "## A. Factual case summary",
        "## B. Main claims of the plaintiff's expert(s)",
        "## C. Claims checked against the record",
        "- Table: | Source/document | Quoted claim | What the record shows | "
        "Interpretation/medical issue | Additional data needed |",
        "## D. Disputed medical issues",
        "## E. English search terms (3-8 per issue)",
        "## F. Relevant articles",
        "- Table: | Topic | Title | Year | Journal | Summary | Supports the plaintiff? | "
        "Relevance | Argument for the defense | Source/DOI |",
        "## G. Main medical conclusions from the literature (at least 5 bullets, each "
        "with `[Source: article]`)",
        "## H. Medical application for the defense",
        "## I. Recommended search phrases",
        "## J. Gaps, follow-up tasks and documents to collect",
        "",
        "### Additional instructions:",
        "- Every claim or data point must end with `[Source: ...]`.",
        "- Explain each medical term (pathophysiology, treatment, ICD-10 where relevant).",
        "- Where a diagram would help, add `[IDEA_FOR_DIAGRAM]: ...`.",
        "- Combine the automatically located literature with additional sources and "
        "check whether they really support the plaintiff's claims.",
        f"- The level of detail must be {DEPTH_HINTS.get(depth, DEPTH_HINTS['deep'])}.",
        f"- Write the entire report in {language}, keeping English medical terms in parentheses.",
    ]
    return "\n".join(sections)


def build_comparison_report_prompt(
    *,
    case_name: str,
    focus_summary: str,
    focus_narrative: str,
    document_a_block: str,
    document_b_block: str,
    literature_text: str,
    unresolved_text: str,
    language: str = "Hebrew",
) -> str:
    """Clinical comparison of the plaintiff (A) and defense (B) opinions."""
    return f"""Medical comparison report between the plaintiff's expert (document A) and the defense expert (document B).

Goal: an in-depth clinical comparison identifying which of the two presents the more convincing medical argument on each issue, based on the opinions and current literature. Medical work only, no legal language.

Assumptions: opinion A represents the plaintiff's expert; opinion B represents the defense expert. If several specialties are involved, split the analysis accordingly.

Case frame:
- Case name: {case_name}
- Selected focus points: {focus_summary}
- Focus text: {focus_narrative}

Opinions under review:
{document_a_block}

{document_b_block}

Literature located:
{literature_text}

Unresolved citations (need verification):
{unresolved_text}

### Work stages:
1. **Claim mapping**: a detailed bullet list of each expert's claims, tagged '[Source: document A/B]'.
2. **Data analysis**: which findings, tests and literature each expert relies on.
3. **Agreement and dispute**: what is agreed and what is disputed (diagnosis, mechanism, standard of care, causation, functional damage).
4. **Quality of evidence**: whether the record supports each claim, contradictions, and whether cited articles are used selectively.
5. **Independent literature**: recent sources of your own, each tied to an issue.
6. **Decision per issue**: who is more convincing and why; what information is missing.
7. **Follow-up recommendations**: further tests, opinions or questions for the defense expert.

### Required report structure:
**Summary per expert**: specialty, base assumptions, key data.
**Agreement/dispute table**: Issue | Plaintiff says | Defense says | Evidence quality | More convincing.
**Critical comparison by specialty**.
**Literature fit**: for each main claim, articles that strengthen or contradict each side.
**Medical conclusions**: strong arguments for each side and weak points of the defense.
**Questions for the defense expert**: at least 10 literature-based questions.
**English search terms**: 3-8 per issue.

### General instructions:
- Every claim or data point must end with '[Source: ...]'.
- Explain every professional and pathophysiological term.
- Where a visual would help, add '[IDEA_FOR_DIAGRAM]: ...'.
- End each issue with a clear decision: "Conclusion: opinion A/B is more convincing because...".
- Write the entire report in {language}."""


def build_literature_review_prompt(
    *,
    case_name: str,
    clinical_question: str,
    focus_summary: str,
    focus_narrative: str,
) -> str:
    """Ad-hoc literature question; the model answers with JSON."""
    return f"""You are assisting defense counsel in a medical malpractice case.
Case Name: {case_name}
Clinical Question: {clinical_question}
Focus Points: {focus_summary}
Focus Notes: {focus_narrative}

Survey Israeli and international sources (including Google Scholar) and return JSON with rich details, clickable links, and explanations for every medical concept.

Return JSON with this structure:
{{
  "question": "...",
  "sources": [
    {{
      "title": "",
      "journal": "",
      "year": 2023,
      "url": "",
      "summary": "",
      "implication": ""
    }}
  ],
  "overallSummary": "",
  "searchSuggestions": [
    "Hebrew: ...",
    "English: ..."
  ]
}}

Guidelines:
- Use detailed sentences (no bullet fragments) and explain each medical concept briefly in parentheses.
- Provide at least five sources. For each source include a clickable link (DOI if known; otherwise a Google Scholar search link such as https://scholar.google.com/scholar?q=<encoded keywords>).
- "summary" describes the study and key findings; "implication" tells defense counsel how to use it.
- In "searchSuggestions" provide at least six combined Hebrew/English search terms or phrases."""


def build_claim_extraction_prompt(
    *,
    case_name: str,
    document_name: str,
    document_text: str,
    focus_summary: str,
    focus_narrative: str,
    language: str = "Hebrew",
) -> str:
    """Structured list of the medical claims made in one expert opinion."""
    return f"""You are a senior medical expert analysing a plaintiff expert opinion.
Produce the list of key medical claims (3-10) as the expert presents them, as structured JSON only.

Rules:
- Report medical claims only, not legal ones.
- Give a short source excerpt (sourceExcerpt) that appears in the text.
- Example categories: "Diagnosis", "Imaging", "Treatment", "Prognosis", "Causation", "Standard of care".
- confidence is between 0 and 1, reflecting how strongly the expert words the claim.
- recommendation is a short idea for follow-up or a question for the opposing expert.
- tags are single words representing the issue type (e.g. ["CT", "Delay"]).
- Write titles, summaries and recommendations in {language}.
- Return JSON in the form:
{{
  "claims": [
    {{
      "claimTitle": "...",
      "claimSummary": "...",
      "category": "...",
      "confidence": 0.85,
      "sourceExcerpt": "...",
      "recommendation": "...",
      "tags": ["..."]
    }}
  ]
}}

Document details:
- Case name: {case_name}
- Document name: {document_name}
- Selected focus points: {focus_summary}
- Open notes: {focus_narrative}

Expert opinion text (read carefully):
\"\"\"
{document_text}
\"\"\"

Return valid JSON only, with no additional text."""
