"""In-memory session store: history, selection, status and usage ledger.

History is an immutable tuple replaced wholesale on every change, and items
are replaced by merged copies, so observers always receive consistent
snapshots. Status and error writes carry a run token; writes from a run
that is no longer active (superseded or cleared) are dropped, while its
item patches still land on that run's own history item.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from omnipedia.errors import FailureKind, PipelineBusyError, StaleRunError
from omnipedia.orchestrator.state import STEP_INDEX, GenerationStatus, is_processing, transition
from omnipedia.schemas.generation import GenerationItem, UsageTotals
from omnipedia.services.file_manager import FileManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the session handed to observers and the API."""

    status: GenerationStatus
    current_id: Optional[str]
    error: Optional[str]
    credential_required: bool
    history: tuple[GenerationItem, ...]

    @property
    def current_item(self) -> Optional[GenerationItem]:
        return next((item for item in self.history if item.id == self.current_id), None)

    @property
    def step_index(self) -> int:
        return STEP_INDEX[self.status]

    @property
    def totals(self) -> UsageTotals:
        return UsageTotals.from_items(self.history)


Observer = Callable[[SessionSnapshot], None]


class SessionStore:
    """Single-session state shared by the pipeline driver, API and CLI."""

    def __init__(self, file_manager: Optional[FileManager] = None):
        self._file_manager = file_manager
        self._history: tuple[GenerationItem, ...] = ()
        self._current_id: Optional[str] = None
        self._status = GenerationStatus.IDLE
        self._error: Optional[str] = None
        self._credential_required = False
        self._active_run: Optional[int] = None
        self._run_ids = itertools.count(1)
        self._observers: list[Observer] = []

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def status(self) -> GenerationStatus:
        return self._status

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def credential_required(self) -> bool:
        return self._credential_required

    @property
    def history(self) -> tuple[GenerationItem, ...]:
        return self._history

    @property
    def current_id(self) -> Optional[str]:
        return self._current_id

    @property
    def current_item(self) -> Optional[GenerationItem]:
        return self.get_item(self._current_id) if self._current_id else None

    @property
    def is_processing(self) -> bool:
        return is_processing(self._status)

    def get_item(self, item_id: str) -> Optional[GenerationItem]:
        return next((item for item in self._history if item.id == item_id), None)

    def is_active(self, run_token: int) -> bool:
        return run_token == self._active_run

    def totals(self) -> UsageTotals:
        """Aggregate usage across every item in history."""
        return UsageTotals.from_items(self._history)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            status=self._status,
            current_id=self._current_id,
            error=self._error,
            credential_required=self._credential_required,
            history=self._history,
        )

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer``; returns a function that unregisters it."""
        self._observers = [*self._observers, observer]

        def _unsubscribe() -> None:
            self._observers = [o for o in self._observers if o is not observer]

        return _unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for observer in self._observers:
            observer(snapshot)

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------
    def _claim_run(self, run_token: Optional[int]) -> int:
        if run_token is not None:
            if not self.is_active(run_token):
                raise StaleRunError(f"Run {run_token} is no longer active")
            return run_token
        if self.is_processing:
            raise PipelineBusyError(f"A generation is already in progress ({self._status.value})")
        token = next(self._run_ids)
        self._active_run = token
        return token

    def begin_random(self) -> int:
        """Enter GENERATING_RANDOM for the surprise flow and return its run token."""
        token = self._claim_run(None)
        self._status = transition(self._status, GenerationStatus.GENERATING_RANDOM)
        self._error = None
        self._current_id = None
        self._notify()
        return token

    def start_run(self, item: GenerationItem, run_token: Optional[int] = None) -> int:
        """Append ``item``, select it and enter PLANNING.

        Args:
            item: Freshly created generation item.
            run_token: Token from begin_random() when continuing a surprise run.

        Raises:
            PipelineBusyError: If another run is in flight.
            StaleRunError: If ``run_token`` was abandoned (e.g. by clear_history).
        """
        token = self._claim_run(run_token)
        self._status = transition(self._status, GenerationStatus.PLANNING)
        self._history = (*self._history, item)
        self._current_id = item.id
        self._error = None
        self._notify()
        logger.info("Run %d started for item %s ('%s')", token, item.id, item.prompt)
        return token

    def set_status(self, run_token: int, status: GenerationStatus) -> bool:
        """Advance the active run's status; ignored for stale runs.

        Returns:
            True if the status was applied.
        """
        if not self.is_active(run_token):
            logger.debug("Dropping status %s from stale run %d", status.value, run_token)
            return False
        self._status = transition(self._status, status)
        if not is_processing(status):
            self._active_run = None
        self._notify()
        return True

    def fail(
        self,
        run_token: int,
        message: str,
        kind: FailureKind = FailureKind.GENERIC,
        status: GenerationStatus = GenerationStatus.FAILED,
    ) -> bool:
        """End the active run with an error; AUTH failures require new credentials."""
        if not self.is_active(run_token):
            logger.debug("Dropping failure from stale run %d: %s", run_token, message)
            return False
        self._status = transition(self._status, status)
        self._error = message
        if kind is FailureKind.AUTH:
            self._credential_required = True
        self._active_run = None
        self._notify()
        return True

    def patch_item(self, item_id: str, **changes) -> Optional[GenerationItem]:
        """Replace the item ``item_id`` with a merged copy.

        Unknown ids (e.g. after clear_history) are ignored.
        """
        item = self.get_item(item_id)
        if item is None:
            return None
        patched = item.merged(**changes)
        self._history = tuple(patched if h.id == item_id else h for h in self._history)
        self._notify()
        return patched

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------
    def select(self, item_id: str) -> GenerationItem:
        """Select a history item; a resting status resets to IDLE without error.

        Raises:
            KeyError: If the id is not in history.
        """
        item = self.get_item(item_id)
        if item is None:
            raise KeyError(item_id)
        self._current_id = item_id
        if not self.is_processing:
            self._status = transition(self._status, GenerationStatus.IDLE)
            self._error = None
        self._notify()
        return item

    def clear_history(self) -> int:
        """Drop every item, delete their saved media and abandon the active run.

        Returns:
            Number of items removed.
        """
        removed = self._history
        if self._file_manager is not None:
            for item in removed:
                self._file_manager.delete_item_assets(item.id)
        if self._active_run is not None:
            logger.info("Abandoning run %d on history clear", self._active_run)
        self._history = ()
        self._current_id = None
        self._active_run = None
        # Reset bypasses the transition table: a run may still be in flight
        self._status = GenerationStatus.IDLE
        self._notify()
        return len(removed)

    def require_credentials(self, message: Optional[str] = None) -> None:
        """Flag that an API key must be (re-)entered before running."""
        self._credential_required = True
        self._error = message
        self._notify()

    def credentials_updated(self) -> None:
        """Clear the credential prompt after a key was saved."""
        self._credential_required = False
        self._error = None
        self._notify()
