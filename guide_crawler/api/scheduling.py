"""Scheduler control endpoint.

One endpoint, several actions:
- start / stop: toggle periodic sweeps
- run: sweep all active guides now
- runForGuide: crawl one guide (``slug`` query parameter)
- stats: last sweep stats and whether a sweep is running

``run`` and ``runForGuide`` are pre-authorized for the internal periodic
trigger (X-Cron-Secret); every action is open to the operator.
"""

import logfire
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from guide_crawler.api.auth import is_internal_trigger, is_operator
from guide_crawler.models.scheduler_models import SchedulerControlResponse
from guide_crawler.services.crawler import InvalidWebsiteUrlError
from guide_crawler.services.scheduler import GuideNotFoundError, get_scheduler

router = APIRouter()

ACTIONS = ("start", "stop", "run", "runForGuide", "stats")
TRIGGER_ACTIONS = ("run", "runForGuide")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _respond(body: SchedulerControlResponse) -> JSONResponse:
    return JSONResponse(content=body.model_dump(mode="json", by_alias=True, exclude_none=True))


@router.get("/scheduled-scraping")
async def control_scheduler(
    request: Request,
    action: str = Query("stats"),
    slug: str | None = Query(None),
):
    """Control the scheduler."""
    if action not in ACTIONS:
        return _error(400, f"Unknown action: {action}")

    internal = action in TRIGGER_ACTIONS and is_internal_trigger(request)
    if not internal and not is_operator(request):
        logfire.warn("Rejected scheduler control request", action=action)
        return _error(401, "Unauthorized")

    scheduler = get_scheduler()
    try:
        if action == "start":
            scheduler.start()
            return _respond(SchedulerControlResponse(running=scheduler.is_running))
        if action == "stop":
            scheduler.stop()
            return _respond(SchedulerControlResponse(running=scheduler.is_running))
        if action == "run":
            stats = await scheduler.run()
            return _respond(SchedulerControlResponse(stats=stats))
        if action == "runForGuide":
            result = await scheduler.run_for_guide(slug or "")
            return _respond(SchedulerControlResponse(result=result))
        return _respond(
            SchedulerControlResponse(running=scheduler.is_running, stats=scheduler.get_stats())
        )
    except GuideNotFoundError as e:
        return _error(404, str(e))
    except (InvalidWebsiteUrlError, ValueError) as e:
        return _error(400, str(e))
    except Exception as e:
        logfire.error(
            "Scheduler action failed",
            action=action,
            error=str(e),
            error_type=type(e).__name__,
        )
        return _error(500, str(e) or type(e).__name__)
