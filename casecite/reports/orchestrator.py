"""Report orchestrator: detect → resolve → assemble → generate → persist."""

import json
import logging

from casecite.agents.claims import extract_claims
from casecite.agents.generation import TextGenerator
from casecite.agents.models import ChatMessage, UsageContext
from casecite.core.case_state import CaseState
from casecite.core.database import CaseDatabase
from casecite.core.errors import (
    AccessDenied,
    CaseCiteError,
    GenerationError,
    NotFound,
    PersistenceError,
    ValidationError,
)
from casecite.core.models import Case, CaseDocument, ReportKind, User
from casecite.core.settings import Settings
from casecite.literature.base import LiteratureProvider
from casecite.literature.detector import detect_reference_candidates
from casecite.literature.models import CitationCandidate
from casecite.literature.resolver import (
    build_provider_chain,
    resolve_literature_references,
)
from casecite.reports import prompts
from casecite.reports.models import (
    ComparisonReportRequest,
    LiteratureReviewRequest,
    LiteratureReviewResult,
    ReportOutcome,
)

logger = logging.getLogger(__name__)

INITIAL_SYSTEM_PROMPT = (
    "You are a senior medical expert supporting the defense team in a "
    "medical malpractice case. Answer with precise professional language."
)
COMPARISON_SYSTEM_PROMPT = (
    "You are a senior medical expert comparing two expert opinions "
    "(plaintiff and defense). Produce a comprehensive comparison report."
)
LITERATURE_SYSTEM_PROMPT = (
    "You are a meticulous medical research assistant supporting defense "
    "counsel. Always respond with valid JSON."
)


class ReportOrchestrator:
    """Sequences one report request end to end against a single case.

    Validation and access checks run before the case leaves its current
    state. Once the case is ``processing``, every path ends in ``idle``
    (report saved) or ``error`` (report untouched).
    """

    def __init__(
        self,
        db: CaseDatabase,
        settings: Settings,
        generator: TextGenerator,
        providers: list[LiteratureProvider] | None = None,
    ):
        self.db = db
        self.settings = settings
        self.generator = generator
        self.providers = (
            providers
            if providers is not None
            else build_provider_chain(settings.literature)
        )

    # ── Initial Report ───────────────────────────────────────

    def generate_initial_report(self, case_id: str, user: User) -> ReportOutcome:
        """Analyse the plaintiff's expert opinions and store the initial report."""
        case = self._load_case(case_id, user)
        docs = self.db.get_case_documents(case_id)
        experts = [d for d in docs if prompts.is_likely_expert_opinion(d)] or docs

        self._begin(case)
        try:
            literature_text, unresolved_text = self._literature_context(experts)
            prompt = prompts.build_initial_report_prompt(
                case_name=case.name,
                owner=case.owner,
                focus_summary=prompts.describe_focus_flags(case.focus_options),
                focus_narrative=prompts.describe_focus_narrative(case.focus_text),
                document_block=prompts.build_document_block(
                    experts, self.settings.reports.prompt_document_char_limit
                ),
                literature_text=literature_text,
                unresolved_text=unresolved_text,
                depth=self.settings.reports.depth,
                language=self.settings.reports.language,
            )
            return self._generate_and_save(
                case,
                user,
                kind="initial",
                system_prompt=INITIAL_SYSTEM_PROMPT,
                prompt=prompt,
                max_tokens=self.settings.generation.initial_report_max_tokens,
            )
        except (GenerationError, PersistenceError) as exc:
            return self._fail(case, "initial", "Failed to generate initial report", exc)
        except Exception:
            self._abort(case)
            raise

    # ── Comparison Report ────────────────────────────────────

    def generate_comparison_report(
        self, case_id: str, user: User, request: ComparisonReportRequest
    ) -> ReportOutcome:
        """Compare opinion A (plaintiff) with opinion B (defense)."""
        case = self._load_case(case_id, user)
        if not request.report_a_id or not request.report_b_id:
            raise ValidationError("Both expert opinions must be selected for comparison")

        doc_a = self._load_document(case_id, request.report_a_id)
        doc_b = self._load_document(case_id, request.report_b_id)
        text_a = _pick_text(request.report_a_text, doc_a)
        text_b = _pick_text(request.report_b_text, doc_b)
        if not text_a or not text_b:
            raise ValidationError("Both expert opinions must contain text for comparison")

        self._begin(case)
        try:
            literature_text, unresolved_text = self._literature_context(
                [doc_a, doc_b], overrides={doc_a.id: text_a, doc_b.id: text_b}
            )
            limit = self.settings.reports.prompt_document_char_limit
            prompt = prompts.build_comparison_report_prompt(
                case_name=case.name,
                focus_summary=prompts.describe_focus_flags(case.focus_options),
                focus_narrative=prompts.describe_focus_narrative(case.focus_text),
                document_a_block=prompts.build_comparison_document_block(
                    "A", doc_a, text_a, limit
                ),
                document_b_block=prompts.build_comparison_document_block(
                    "B", doc_b, text_b, limit
                ),
                literature_text=literature_text,
                unresolved_text=unresolved_text,
                language=self.settings.reports.language,
            )
            return self._generate_and_save(
                case,
                user,
                kind="comparison",
                system_prompt=COMPARISON_SYSTEM_PROMPT,
                prompt=prompt,
                max_tokens=self.settings.generation.comparison_report_max_tokens,
            )
        except (GenerationError, PersistenceError) as exc:
            return self._fail(
                case, "comparison", "Failed to generate comparison report", exc
            )
        except Exception:
            self._abort(case)
            raise

    # ── Literature Review ────────────────────────────────────

    def run_literature_review(
        self, case_id: str, user: User, request: LiteratureReviewRequest
    ) -> ReportOutcome:
        """Answer an ad-hoc clinical question. Nothing is persisted but the usage log."""
        case = self._load_case(case_id, user)
        question = (request.clinical_question or "").strip()
        if not question:
            raise ValidationError("A clinical question is required")

        prompt = prompts.build_literature_review_prompt(
            case_name=case.name,
            clinical_question=question,
            focus_summary=prompts.describe_focus_flags(case.focus_options),
            focus_narrative=prompts.describe_focus_narrative(case.focus_text),
        )
        try:
            result = self.generator.generate(
                [
                    ChatMessage(role="system", content=LITERATURE_SYSTEM_PROMPT),
                    ChatMessage(role="user", content=prompt),
                ],
                temperature=self.settings.generation.default_temperature,
                max_tokens=self.settings.generation.literature_review_max_tokens,
                response_format="json",
                metadata=UsageContext(
                    case_id=case.id, username=user.username, action="literature-review"
                ),
            )
        except GenerationError as exc:
            logger.error("Literature review failed for case %s: %s", case.id, exc.details)
            return ReportOutcome(
                ok=False,
                case_id=case.id,
                message="Failed to run literature review",
                details=exc.details or exc.message,
            )

        return ReportOutcome(
            ok=True,
            case_id=case.id,
            literature=parse_literature_review(result.text, question),
        )

    # ── Claim Extraction ─────────────────────────────────────

    def extract_document_claims(
        self, case_id: str, user: User, document_id: str
    ) -> ReportOutcome:
        """Structured claims from one stored expert opinion. No state change."""
        case = self._load_case(case_id, user)
        doc = self._load_document(case_id, document_id)
        if not doc.extracted_text or not doc.extracted_text.strip():
            raise ValidationError("The selected document has no extracted text")

        prompt = prompts.build_claim_extraction_prompt(
            case_name=case.name,
            document_name=doc.original_filename,
            document_text=prompts.truncate_for_prompt(
                doc.extracted_text, self.settings.reports.prompt_document_char_limit
            ),
            focus_summary=prompts.describe_focus_flags(case.focus_options),
            focus_narrative=prompts.describe_focus_narrative(case.focus_text),
            language=self.settings.reports.language,
        )
        try:
            claims = extract_claims(
                self.generator,
                prompt,
                max_tokens=self.settings.generation.claim_extraction_max_tokens,
                metadata=UsageContext(
                    case_id=case.id, username=user.username, action="claim-extraction"
                ),
            )
        except GenerationError as exc:
            logger.error("Claim extraction failed for document %s: %s", doc.id, exc.message)
            return ReportOutcome(
                ok=False,
                case_id=case.id,
                message="Failed to extract claims",
                details=exc.details or exc.message,
            )
        return ReportOutcome(ok=True, case_id=case.id, claims=claims)

    # ── Literature Context ───────────────────────────────────

    def _literature_context(
        self,
        docs: list[CaseDocument],
        overrides: dict[str, str] | None = None,
    ) -> tuple[str, str]:
        """Detect citations per document, resolve them, and format both lists."""
        lit = self.settings.literature
        candidates: list[CitationCandidate] = []
        for doc in docs:
            text = (overrides or {}).get(doc.id, doc.extracted_text)
            if not text:
                continue
            candidates.extend(
                detect_reference_candidates(
                    text,
                    limit=min(lit.detection_limit, lit.max_references_per_document),
                    source_document_id=doc.id,
                    source_document_name=doc.original_filename,
                )
            )
        pooled = candidates[: lit.max_references_per_report]

        try:
            result = resolve_literature_references(
                pooled, self.providers, limit=lit.resolve_limit
            )
        except Exception as exc:
            logger.error("Literature resolution crashed, continuing without it: %s", exc)
            unresolved = pooled[: lit.resolve_limit]
            return (
                prompts.RESOLUTION_FAILED_PLACEHOLDER,
                prompts.format_unresolved_citations(unresolved),
            )

        return (
            prompts.format_resolved_references(result.resolved),
            prompts.format_unresolved_citations(result.unresolved),
        )

    # ── Internals ────────────────────────────────────────────

    def _load_case(self, case_id: str, user: User) -> Case:
        case = self.db.get_case(case_id)
        if case is None:
            raise NotFound("Case not found")
        if not case.can_be_accessed_by(user):
            raise AccessDenied("Access denied")
        return case

    def _load_document(self, case_id: str, document_id: str) -> CaseDocument:
        doc = self.db.get_case_document(case_id, document_id)
        if doc is None:
            raise NotFound(f"Document {document_id} not found in case")
        return doc

    def _begin(self, case: Case) -> None:
        if case.state == CaseState.PROCESSING:
            logger.warning(
                "Case %s is already processing; concurrent requests are not "
                "serialized and the last report written wins",
                case.id,
            )
        self.db.begin_processing(case.id)

    def _generate_and_save(
        self,
        case: Case,
        user: User,
        *,
        kind: ReportKind,
        system_prompt: str,
        prompt: str,
        max_tokens: int,
    ) -> ReportOutcome:
        gen = self.settings.generation
        result = self.generator.generate(
            [
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=prompt),
            ],
            model=gen.report_model,
            temperature=gen.report_temperature,
            max_tokens=max_tokens,
            metadata=UsageContext(
                case_id=case.id, username=user.username, action=f"{kind}-report"
            ),
        )
        updated = self.db.save_report(case.id, kind, result.text, settle=True)
        logger.info(
            "Stored %s report for case %s (%d chars, %dms)",
            kind,
            case.id,
            len(result.text),
            result.duration_ms,
        )
        return ReportOutcome(
            ok=True,
            case_id=case.id,
            kind=kind,
            report=updated.report(kind),
            state=updated.state,
        )

    def _abort(self, case: Case) -> None:
        """Leave processing on an unexpected error before it propagates."""
        try:
            self.db.mark_error(case.id, settle=True)
        except CaseCiteError as exc:
            logger.error("Could not mark case %s as error: %s", case.id, exc.message)

    def _fail(
        self, case: Case, kind: ReportKind, message: str, exc: CaseCiteError
    ) -> ReportOutcome:
        logger.error("%s for case %s: %s", message, case.id, exc.details or exc.message)
        try:
            state = self.db.mark_error(case.id, settle=True).state
        except CaseCiteError as mark_exc:
            logger.error("Could not mark case %s as error: %s", case.id, mark_exc.message)
            current = self.db.get_case(case.id)
            state = current.state if current else None
        return ReportOutcome(
            ok=False,
            case_id=case.id,
            kind=kind,
            state=state,
            message=message,
            details=exc.details or exc.message,
        )


# ── Helpers ──────────────────────────────────────────────────────────


def _pick_text(override: str | None, doc: CaseDocument) -> str | None:
    if override and override.strip():
        return override
    return doc.extracted_text if doc.extracted_text and doc.extracted_text.strip() else None


def parse_literature_review(raw: str, question: str) -> LiteratureReviewResult:
    """Parse the JSON answer; on malformed output keep the raw text as summary."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Literature review returned non-JSON output; keeping raw text")
        return LiteratureReviewResult(question=question, overall_summary=raw.strip())
    if not isinstance(data, dict):
        logger.warning(
            "Literature review returned a JSON %s; keeping raw text", type(data).__name__
        )
        return LiteratureReviewResult(question=question, overall_summary=raw.strip())
    return LiteratureReviewResult.from_model_output(data, question)
