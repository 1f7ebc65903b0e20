from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass
from enum import Enum

from . import db
from .config import CcmemConfig
from .context import ContextAssembler, render_hook_context
from .ingest.events import derive_observation, parse_event
from .ingest.types import HookKind, PostToolUseEvent, SessionStartEvent
from .store import MemoryStore

logger = logging.getLogger(__name__)


class IngestStatus(str, Enum):
    CONTEXT = "context"
    NOOP = "noop"
    FAILED = "failed"


@dataclass
class IngestResult:
    status: IngestStatus
    context: str | None = None
    observation_id: int | None = None
    session_id: int | None = None
    error: str | None = None


class HookIngestor:
    """Turns agent hook events into stored observations and context blocks.

    Ingestion never raises: every failure is logged and reported as
    ``IngestStatus.FAILED`` so a broken hook cannot abort the agent's tool
    loop. ``current_session_id`` is set by a session-start event and used for
    every later observation handled by this instance.
    """

    def __init__(self, store: MemoryStore, config: CcmemConfig) -> None:
        self.store = store
        self.config = config
        self.assembler = ContextAssembler(
            store,
            search_limit=config.context_search_limit,
            project_limit=config.context_project_limit,
            recent_limit=config.context_recent_limit,
        )
        self.current_session_id: int | None = None

    def ingest(
        self, kind: HookKind | str, raw: str | None, *, default_app: str | None = None
    ) -> IngestResult:
        if raw is None or not raw.strip():
            return IngestResult(status=IngestStatus.NOOP)
        try:
            hook_kind = HookKind(kind)
            event = parse_event(hook_kind, json.loads(raw), default_app=default_app)
            if isinstance(event, SessionStartEvent):
                return self._handle_session_start(event)
            return self._handle_post_tool_use(event)
        except Exception as exc:
            logger.warning("hook ingest failed (%s): %s", kind, exc)
            return IngestResult(status=IngestStatus.FAILED, error=str(exc))

    def _handle_session_start(self, event: SessionStartEvent) -> IngestResult:
        session = self.store.start_session(event.app, event.project_dir)
        self.current_session_id = session.id
        logger.info(
            "session %s started (app=%s project=%s)", session.id, event.app, event.project_dir
        )
        if not self.config.session_start_context:
            return IngestResult(status=IngestStatus.NOOP, session_id=session.id)
        items = self.assembler.get_context(
            max_tokens=self.config.hook_context_tokens, project=event.project_dir
        )
        context = render_hook_context(items, self.config.hook_context_items)
        if not context:
            return IngestResult(status=IngestStatus.NOOP, session_id=session.id)
        return IngestResult(status=IngestStatus.CONTEXT, context=context, session_id=session.id)

    def _resolve_session_id(self, project_dir: str | None) -> int | None:
        if self.current_session_id is not None:
            return self.current_session_id
        session = self.store.current_session(project_dir)
        return session.id if session else None

    def _handle_post_tool_use(self, event: PostToolUseEvent) -> IngestResult:
        new = derive_observation(
            event,
            max_content_chars=self.config.hook_max_content_chars,
            hook_command=self.config.hook_command,
        )
        if new is None:
            logger.debug("skipping internal memory tool call: %s", event.tool)
            return IngestResult(status=IngestStatus.NOOP)
        session_id = self._resolve_session_id(event.project_dir)
        obs = self.store.add_observation(dataclasses.replace(new, session_id=session_id))
        logger.debug("observation %s recorded from %s", obs.id, event.tool)
        items = self.assembler.get_context(
            query=obs.title,
            max_tokens=self.config.hook_context_tokens,
            project=event.project_dir,
            exclude_ids=[obs.id],
        )
        context = render_hook_context(items, self.config.hook_context_items)
        status = IngestStatus.CONTEXT if context else IngestStatus.NOOP
        return IngestResult(
            status=status,
            context=context or None,
            observation_id=obs.id,
            session_id=session_id,
        )


def run_hook(
    kind: HookKind | str,
    raw: str | bytes | None,
    config: CcmemConfig,
    *,
    default_app: str | None = None,
) -> IngestResult:
    """Open the store, ingest one payload, close the store.

    Raw stdin bytes are decoded as UTF-8; undecodable bytes become U+FFFD so a
    tool result with binary output still yields an observation.
    """

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if raw is None or not raw.strip():
        return IngestResult(status=IngestStatus.NOOP)
    try:
        store = MemoryStore(config.db_path, busy_timeout_ms=config.busy_timeout_ms)
    except db.StorageError as exc:
        logger.warning("hook ingest could not open %s: %s", config.db_path, exc)
        return IngestResult(status=IngestStatus.FAILED, error=str(exc))
    try:
        return HookIngestor(store, config).ingest(kind, raw, default_app=default_app)
    finally:
        store.close()
