# nacos_vote/tallies.py
# Pure helpers for the results, votes-table and backup pages
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from nacos_vote.schemas import BackupStatus, CandidateTally

BACKUP_FILENAMES = {
    "full": "election-full-backup-{ts}.json",
    "users": "election-users-{ts}.json",
    "votes-table": "election-votes-{ts}.json",
}


def rank_candidates(candidates: List[CandidateTally]) -> List[CandidateTally]:
    return sorted(candidates, key=lambda c: c.votes, reverse=True)


def get_winner(candidates: List[CandidateTally]) -> Optional[CandidateTally]:
    """Top candidate, or None when nobody has a vote yet."""
    if not candidates:
        return None
    top = rank_candidates(candidates)[0]
    return top if top.votes > 0 else None


def position_results(vote_counts: Dict[str, List[CandidateTally]]) -> List[Dict[str, Any]]:
    results = []
    for position, candidates in vote_counts.items():
        ranked = rank_candidates(candidates)
        total = sum(c.votes for c in ranked)
        winner = get_winner(ranked)
        tied = winner is not None and sum(1 for c in ranked if c.votes == winner.votes) > 1
        results.append({
            "position": position,
            "total": total,
            "winner": None if tied else winner,
            "tied": tied,
            "candidates": [
                {
                    "name": c.name,
                    "votes": c.votes,
                    "share": round(c.votes * 100.0 / total, 1) if total else 0.0,
                }
                for c in ranked
            ],
        })
    return results


def format_timestamp(value: Any) -> str:
    if value is None or value == "":
        return "N/A"

    if isinstance(value, dict):
        # Firestore Timestamp serialised by the backend
        seconds = value.get("_seconds", value.get("seconds"))
        if seconds is None:
            return "N/A"
        value = float(seconds) + float(value.get("_nanoseconds", value.get("nanoseconds", 0))) / 1e9

    if isinstance(value, (int, float)):
        # epoch millis from JS Date.now(), otherwise seconds
        seconds = value / 1000.0 if value > 1e11 else float(value)
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return str(value)
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def backup_status_line(status: BackupStatus) -> str:
    counts = status.counts
    return (
        f"📊 Status: {status.message} | Users: {counts.users} | "
        f"Votes: {counts.votes} | Candidates: {counts.candidates}"
    )


def backup_filename(kind: str, now: datetime = None) -> str:
    now = now or datetime.now(timezone.utc)
    return BACKUP_FILENAMES[kind].format(ts=int(now.timestamp() * 1000))
