"""Single entry point: replay actions, capture snapshots, analyze, report."""

from typing import TYPE_CHECKING, Any

import structlog

from web_access_advisor.batching import HierarchicalBatchAnalyzer
from web_access_advisor.browser import ReplayBrowser
from web_access_advisor.capture import CaptureEngine
from web_access_advisor.config import Config
from web_access_advisor.errors import PipelineNotInitializedError
from web_access_advisor.llm import AnthropicTextService, TextAnalysisService
from web_access_advisor.manifest import build_manifest
from web_access_advisor.models.actions import Action
from web_access_advisor.models.analysis import SessionResult
from web_access_advisor.progress import Phase, ProgressChannel
from web_access_advisor.replay import ReplayEngine
from web_access_advisor.scanner import AccessibilityScanner, AxeScanner
from web_access_advisor.storage import SessionStore, new_session_id
from web_access_advisor.violations import ViolationConsolidator

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = structlog.get_logger(__name__)


async def run_session(
    actions: list[Action | dict[str, Any]],
    options: Config | None = None,
    *,
    page: "Page | None" = None,
    scanner: AccessibilityScanner | None = None,
    service: TextAnalysisService | None = None,
    progress: ProgressChannel | None = None,
    session_id: str | None = None,
) -> SessionResult:
    """Replay a recorded session and produce its accessibility report.

    The result always resolves: fatal errors are reported through
    ``success=False`` and ``error`` rather than raised.

    Args:
        actions: Recorded actions, as models or plain dicts
        options: Configuration (loaded from file and environment when omitted)
        page: Existing Playwright page; a headless browser is launched when omitted
        scanner: Accessibility scanner (axe-core when omitted)
        service: Text-analysis service (Anthropic when omitted and analysis is enabled)
        progress: Channel that receives phase events; closed when the run ends
        session_id: Session identifier (generated when omitted)

    Returns:
        SessionResult
    """
    config = options or Config.load()
    session_id = session_id or new_session_id()
    log = logger.bind(session_id=session_id)

    try:
        parsed = [a if isinstance(a, Action) else Action.model_validate(a) for a in actions]
        store = SessionStore(session_id, config)

        if not parsed:
            manifest = build_manifest(session_id, None, [], [], config.rules)
            await store.save_manifest(manifest)
            log.warning("no actions to replay")
            return SessionResult(
                success=True,
                session_id=session_id,
                manifest=manifest,
                warnings=["No actions to replay; wrote an empty manifest"],
            )

        if page is not None:
            return await _run(page, parsed, config, store, scanner, service, progress)

        async with ReplayBrowser(config.browser) as browser:
            return await _run(browser.page, parsed, config, store, scanner, service, progress)

    except Exception as e:
        log.error("session failed", error=str(e), exc_info=True)
        return SessionResult(success=False, session_id=session_id, error=str(e))

    finally:
        if progress:
            progress.close()


async def _run(
    page: "Page",
    actions: list[Action],
    config: Config,
    store: SessionStore,
    scanner: AccessibilityScanner | None,
    service: TextAnalysisService | None,
    progress: ProgressChannel | None,
) -> SessionResult:
    log = logger.bind(session_id=store.session_id)
    warnings: list[str] = []

    if page.is_closed():
        raise PipelineNotInitializedError("Page is closed; cannot replay actions")

    capture = CaptureEngine(store, scanner or AxeScanner(config.capture), config.capture)
    engine = ReplayEngine(capture, config.replay, store, progress)

    log.info("replay started", actions=len(actions))
    outcome = await engine.replay(page, actions)
    snapshots = outcome.snapshots
    if outcome.status == "failed":
        return SessionResult(
            success=False,
            session_id=store.session_id,
            snapshots=snapshots,
            error=outcome.error,
        )
    if not snapshots:
        warnings.append("No snapshots were captured")

    manifest = build_manifest(store.session_id, None, actions, snapshots, config.rules)

    if service is None and config.analysis.enabled:
        if config.analysis.api_key:
            service = AnthropicTextService(config.analysis)
        else:
            warnings.append("Analysis skipped: no API key configured")
    elif not config.analysis.enabled:
        service = None

    if progress:
        progress.publish(Phase.SCANNING, "Consolidating scan violations", total=len(actions), snapshot_count=len(snapshots))
    violations = await ViolationConsolidator(service, config.analysis.request_timeout_s).consolidate(snapshots)

    analysis = None
    if service is not None:
        analyzer = HierarchicalBatchAnalyzer(service, config.analysis, progress)
        analysis = await analyzer.analyze(snapshots, manifest)
        if analysis.failed_batches:
            warnings.append(f"{len(analysis.failed_batches)} analysis batch(es) failed: {', '.join(analysis.failed_batches)}")

    if progress:
        progress.publish(Phase.REPORTING, "Writing session manifest", total=len(actions), snapshot_count=len(snapshots))
    await store.save_manifest(manifest)

    log.info(
        "session complete",
        snapshots=len(snapshots),
        violations=len(violations),
        components=len(analysis.components) if analysis else 0,
    )
    return SessionResult(
        success=True,
        session_id=store.session_id,
        snapshots=snapshots,
        manifest=manifest,
        analysis=analysis,
        violations=violations,
        warnings=warnings,
    )
