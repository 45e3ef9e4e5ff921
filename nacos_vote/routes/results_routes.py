from fastapi import APIRouter, Depends, Request

from nacos_vote import config
from nacos_vote.backend import BackendClient
from nacos_vote.dependencies import get_backend, render
from nacos_vote.errors import VotingError
from nacos_vote.tallies import format_timestamp, position_results

router = APIRouter(tags=["Results"])


@router.get("/results")
async def results_page(request: Request, backend: BackendClient = Depends(get_backend)):
    if not config.RESULTS_VISIBLE:
        return render(request, "results.html", suspended=True, summary=None, positions=[], error=None)
    try:
        summary = await backend.public_votes()
    except VotingError as e:
        return render(request, "results.html", status_code=502, suspended=False, summary=None, positions=[], error=e.message)
    return render(
        request,
        "results.html",
        suspended=False,
        summary=summary,
        positions=position_results(summary.voteCounts),
        error=None,
    )


@router.get("/votes-table")
async def votes_table_page(request: Request, backend: BackendClient = Depends(get_backend)):
    """Live log of recorded votes, newest as the backend orders them."""
    try:
        votes = await backend.all_votes()
    except VotingError as e:
        return render(request, "votes_table.html", status_code=502, rows=[], error=e.message)
    rows = [
        {
            "email": v.userEmail or "",
            "matric": v.matricNumber or "",
            "position": v.position or "",
            "time": format_timestamp(v.timestamp),
        }
        for v in votes
    ]
    return render(request, "votes_table.html", rows=rows, error=None)
