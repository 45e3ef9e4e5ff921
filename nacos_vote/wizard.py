# nacos_vote/wizard.py
"""Sequential per-position voting wizard.

The controller walks a voter through the positions still open for them, one
candidate selection at a time. Each confirmed vote is buffered locally under
`tempVotes` so a reload resumes at the first position without a confirmed
vote. Once every position is confirmed the ballot is finalized with the
backend and all local state is purged.

Storage and time are ports (`StoredSession`, `clock`) so the controller runs
without a browser or real timers.
"""
import logging
import time
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError as SchemaError

from nacos_vote import config
from nacos_vote.backend import BackendClient
from nacos_vote.errors import (
    ConflictError,
    SessionExpiredError,
    StorageError,
    ValidationError,
    VotingError,
    WizardStateError,
)
from nacos_vote.models.session_model import Session
from nacos_vote.models.vote_model import Candidate, PendingVotes, TempVote
from nacos_vote.schemas import CompleteVotingRequest, VoteRequest
from nacos_vote.storage import LocalStorage

logger = logging.getLogger(__name__)

USER_KEY = "user"
TEMP_VOTES_KEY = "tempVotes"


class WizardState(str, Enum):
    LOADING = "loading"
    AWAITING_SELECTION = "awaiting_selection"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    FINALIZING = "finalizing"
    DONE = "done"
    EXPIRED = "expired"
    # integrity conflict at finalize; torn down like EXPIRED
    REJECTED = "rejected"


TERMINAL_STATES = (WizardState.DONE, WizardState.EXPIRED, WizardState.REJECTED)
BUSY_STATES = (WizardState.LOADING, WizardState.SUBMITTING, WizardState.FINALIZING)


class StoredSession:
    """Session and PendingVote ports over one browser's storage."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def load_session(self) -> Optional[Session]:
        raw = self.storage.get_item(USER_KEY)
        if not raw:
            return None
        try:
            return Session.model_validate(raw)
        except SchemaError:
            logger.warning("Discarding malformed stored session")
            return None

    def save_session(self, session: Session) -> None:
        self.storage.set_item(USER_KEY, session.model_dump(by_alias=True, mode="json"))

    def load_pending_votes(self) -> PendingVotes:
        raw = self.storage.get_item(TEMP_VOTES_KEY) or {}
        pending = {}
        for position, vote in raw.items():
            try:
                pending[position] = TempVote.model_validate(vote)
            except SchemaError:
                logger.warning("Dropping malformed buffered vote for %s", position)
        return pending

    def save_pending_votes(self, pending: PendingVotes) -> None:
        self.storage.set_item(
            TEMP_VOTES_KEY, {p: v.model_dump(by_alias=True) for p, v in pending.items()}
        )

    def clear_session(self) -> None:
        self.storage.remove_item(USER_KEY)
        self.storage.remove_item(TEMP_VOTES_KEY)


class VotingWizardController:
    def __init__(self, backend: BackendClient, ports: StoredSession, clock: Callable[[], float] = time.time):
        self.backend = backend
        self.ports = ports
        self.clock = clock

        self.state = WizardState.LOADING
        self.session: Optional[Session] = None
        self.all_positions: List[str] = []
        self.positions: List[str] = []
        self.cursor = 0
        self.candidates: List[Candidate] = []
        self.pending_votes: PendingVotes = {}
        self.error: Optional[str] = None

    # --- Views ---

    @property
    def current_position(self) -> Optional[str]:
        if self.cursor < len(self.positions):
            return self.positions[self.cursor]
        return None

    @property
    def busy(self) -> bool:
        return self.state in BUSY_STATES

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def remaining_seconds(self) -> int:
        if self.session is None:
            return 0
        return max(0, int(self.session.expires_at - self.clock()))

    # --- Lifecycle ---

    async def mount(self):
        """Load (or resume) the session: positions already buffered are never offered again."""
        self.state = WizardState.LOADING
        self.error = None
        self.session = self.ports.load_session()
        if self.session is None:
            self.state = WizardState.EXPIRED
            raise SessionExpiredError("No user session found. Please sign in.")
        self._check_deadline()

        self.pending_votes = self.ports.load_pending_votes()
        ordered = await self._guard(self.backend.get_positions())
        remaining = set(self.session.remaining_positions)
        self.all_positions = [p for p in ordered if not remaining or p in remaining]
        self.positions = [p for p in self.all_positions if p not in self.pending_votes]
        self.cursor = 0
        logger.info(
            "Wizard mounted for %s: %d of %d positions left",
            self.session.institutional_email, len(self.positions), len(self.all_positions),
        )

        if not self.positions:
            await self.finalize()
        else:
            await self._load_candidates()

    async def _load_candidates(self):
        self.state = WizardState.LOADING
        self.candidates = []
        position = self.current_position
        try:
            self.candidates = await self._guard(self.backend.get_candidates(position))
        except VotingError as e:
            if self.state not in TERMINAL_STATES:
                self.state = WizardState.AWAITING_SELECTION
            self.error = e.message
            raise
        self.state = WizardState.AWAITING_SELECTION

    async def submit_vote(self, position: str, candidate_id: str):
        self._check_deadline()
        if self.state != WizardState.AWAITING_SELECTION:
            raise WizardStateError()
        if not candidate_id:
            raise ValidationError("Please select a candidate")
        if position != self.current_position:
            raise ValidationError(f"Voting for {position} is not open right now.")
        candidate = next((c for c in self.candidates if c.id == candidate_id), None)
        if candidate is None:
            raise ValidationError("Please select one of the listed candidates.")

        # another page for this browser may have buffered the position since mount
        stored = self.ports.load_pending_votes()
        if position in stored:
            self.pending_votes = stored
            self.state = WizardState.SUBMITTED
            raise ConflictError(f"Your vote for {position} is already recorded.")

        self.state = WizardState.SUBMITTING
        self.error = None
        request = VoteRequest(
            institutionalEmail=self.session.institutional_email,
            sessionToken=self.session.session_token,
            candidateId=candidate.id,
            position=position,
            deviceId=self.session.device_id,
        )
        try:
            await self._guard(self.backend.submit_vote(request))
        except VotingError as e:
            if self.state not in TERMINAL_STATES:
                self.state = WizardState.AWAITING_SELECTION
            self.error = e.message
            raise

        pending = {**self.pending_votes, **self.ports.load_pending_votes()}
        pending[position] = TempVote(candidateId=candidate.id, candidateName=candidate.name)
        try:
            self.ports.save_pending_votes(pending)
        except StorageError as e:
            self.state = WizardState.AWAITING_SELECTION
            self.error = e.message
            raise
        self.pending_votes = pending
        self.state = WizardState.SUBMITTED
        logger.info("Vote for %s confirmed (%d/%d)", position, len(pending), len(self.all_positions))

    async def advance(self):
        self._check_deadline()
        if self.state != WizardState.SUBMITTED or self.current_position not in self.pending_votes:
            raise WizardStateError("Please submit your vote first.")
        self.cursor += 1
        if self.cursor == len(self.positions):
            await self.finalize()
        else:
            await self._load_candidates()

    async def finalize(self):
        self._check_deadline()
        if self.state not in (WizardState.LOADING, WizardState.SUBMITTED) or self.cursor < len(self.positions):
            raise WizardStateError()
        if set(self.pending_votes) != set(self.all_positions):
            missing = [p for p in self.all_positions if p not in self.pending_votes]
            raise ValidationError(f"Please vote for every position first: {', '.join(missing)}")

        self.state = WizardState.FINALIZING
        self.error = None
        request = CompleteVotingRequest(
            institutionalEmail=self.session.institutional_email,
            sessionToken=self.session.session_token,
            deviceId=self.session.device_id,
        )
        try:
            await self._guard(self.backend.complete_voting(request))
        except ConflictError as e:
            self.error = e.message
            if e.fatal:
                logger.warning("Ballot of %s rejected at completion: %s", self.session.institutional_email, e.message)
                self._teardown(WizardState.REJECTED)
            else:
                self.state = WizardState.SUBMITTED
            raise
        except VotingError as e:
            if self.state not in TERMINAL_STATES:
                self.state = WizardState.SUBMITTED
            self.error = e.message
            raise

        logger.info("Ballot completed for %s", self.session.institutional_email)
        self._teardown(WizardState.DONE)

    # --- Expiry ---

    def tick(self):
        """Called periodically; moves to EXPIRED once the deadline has passed."""
        if self.is_terminal or self.session is None:
            return
        if self.session.is_expired(self.clock()):
            self.expire()

    def expire(self):
        logger.info("Voting session expired")
        self.error = SessionExpiredError.default_message
        self._teardown(WizardState.EXPIRED)

    def logout(self):
        self._teardown(WizardState.EXPIRED)

    def _check_deadline(self):
        if self.state == WizardState.EXPIRED:
            raise SessionExpiredError()
        if self.session is not None and self.session.is_expired(self.clock()):
            self.expire()
            raise SessionExpiredError()

    async def _guard(self, call):
        """Await a backend call; its outcome is discarded if the session expired meanwhile."""
        try:
            result = await call
        except SessionExpiredError:
            if not self.is_terminal:
                self.expire()
            raise
        except VotingError:
            self._check_deadline()
            raise
        self._check_deadline()
        return result

    def _teardown(self, state: WizardState):
        # terminal even if purging storage fails
        self.pending_votes = {}
        self.candidates = []
        self.state = state
        self.ports.clear_session()


class WizardRegistry:
    """Live controller per browser id, standing in for the open page."""

    def __init__(self):
        self._controllers: Dict[str, VotingWizardController] = {}

    def get(self, browser_id: str) -> Optional[VotingWizardController]:
        controller = self._controllers.get(browser_id)
        if controller is not None:
            controller.tick()
            if controller.is_terminal:
                self.discard(browser_id)
                return None
        return controller

    def put(self, browser_id: str, controller: VotingWizardController):
        self._controllers[browser_id] = controller

    def discard(self, browser_id: str):
        self._controllers.pop(browser_id, None)

    def __len__(self):
        return len(self._controllers)


def new_session_deadline(now: float = None) -> float:
    now = time.time() if now is None else now
    return now + config.SESSION_DURATION_MINUTES * 60
