"""Session directory layout and artifact persistence."""

import json
import time
import uuid
from pathlib import Path
from typing import Any

import aiofiles

from web_access_advisor.config import Config
from web_access_advisor.models.manifest import SessionManifest

MANIFEST_FILE = "manifest.json"
REPLAY_LOG_FILE = "replay_log.jsonl"
HTML_FILE = "snapshot.html"
AXE_CONTEXT_FILE = "axe_context.json"
AXE_RESULTS_FILE = "axe_results.json"
SCREENSHOT_FILE = "screenshot.png"


def new_session_id() -> str:
    """Generate a sortable, unique session identifier."""
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class SessionStore:
    """Reads and writes the artifacts of one analysis session.

    Layout::

        <output_dir>/<session_id>/manifest.json
        <output_dir>/<session_id>/replay_log.jsonl
        <output_dir>/<session_id>/step_001/snapshot.html
        <output_dir>/<session_id>/step_001/axe_context.json
        <output_dir>/<session_id>/step_001/axe_results.json
        <output_dir>/<session_id>/step_001/screenshot.png
    """

    def __init__(self, session_id: str, config: Config | None = None, output_dir: Path | None = None):
        self.session_id = session_id
        self.config = config or Config.load()
        self.output_dir = Path(output_dir or self.config.storage.output_dir)
        self.session_dir.mkdir(parents=True, exist_ok=True)

    @property
    def session_dir(self) -> Path:
        return self.output_dir / self.session_id

    @property
    def manifest_path(self) -> Path:
        return self.session_dir / MANIFEST_FILE

    @property
    def replay_log_path(self) -> Path:
        return self.session_dir / REPLAY_LOG_FILE

    def step_dir(self, step: int) -> Path:
        """Get (and create) the directory for a captured step."""
        path = self.session_dir / f"step_{step:03d}"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def screenshot_path(self, step: int) -> Path:
        return self.step_dir(step) / SCREENSHOT_FILE

    async def write_text(self, path: Path, content: str) -> Path:
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(content)
        return path

    async def write_json(self, path: Path, data: Any) -> Path:
        return await self.write_text(path, json.dumps(data, indent=2, default=str))

    async def save_html(self, step: int, html: str) -> Path:
        return await self.write_text(self.step_dir(step) / HTML_FILE, html)

    async def save_axe_context(self, step: int, context: dict[str, Any]) -> Path:
        return await self.write_json(self.step_dir(step) / AXE_CONTEXT_FILE, context)

    async def save_axe_results(self, step: int, results: dict[str, Any]) -> Path:
        return await self.write_json(self.step_dir(step) / AXE_RESULTS_FILE, results)

    async def append_log_line(self, line: str) -> None:
        async with aiofiles.open(self.replay_log_path, "a", encoding="utf-8") as f:
            await f.write(line + "\n")

    async def save_manifest(self, manifest: SessionManifest) -> Path:
        """Write the session manifest.

        Args:
            manifest: Manifest to persist

        Returns:
            Path to manifest.json
        """
        return await self.write_text(self.manifest_path, manifest.model_dump_json(indent=2))

    async def load_manifest(self) -> SessionManifest | None:
        """Load the session manifest.

        Returns:
            SessionManifest if it exists, None otherwise
        """
        if not self.manifest_path.exists():
            return None

        async with aiofiles.open(self.manifest_path, encoding="utf-8") as f:
            content = await f.read()
            return SessionManifest.model_validate_json(content)
