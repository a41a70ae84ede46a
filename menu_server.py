# menu_server.py
import logging
import datetime as dt
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from menu_cache import DailyRefresh, MenuCache
from menu_config import Settings, parse_listen
from menu_errors import DateRangeError, MenuError, NotYetPublishedError

log = logging.getLogger("menu_server")


def create_app(
    settings: Optional[Settings] = None,
    cache: Optional[MenuCache] = None,
    schedule: bool = True,
) -> FastAPI:
    """
    App serving dishes per day. Without an explicit cache one is created and filled
    at startup; startup fails if that first refresh does.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        menu = cache or MenuCache.create(settings)
        app.state.menu = menu
        refresher = None
        if schedule:
            refresher = DailyRefresh(menu, settings.refresh_at)
            refresher.start()
            log.info("registered daily menu refresh at %s", settings.refresh_at.strftime("%H:%M"))
        try:
            yield
        finally:
            if refresher is not None:
                refresher.stop()
            menu.close()
            log.info("menu server shut down")

    app = FastAPI(title="Bistro Menu", version="1.0.0", lifespan=lifespan)

    # ─── Liveness ────────────────────────────────────────────────────────────
    @app.get("/alive", response_class=PlainTextResponse)
    def alive():
        return "I am alive\n"

    # ─── Dishes of one day ───────────────────────────────────────────────────
    @app.get("/menu/{date}")
    def menu(date: str) -> List[Dict[str, Any]]:
        try:
            day = dt.date.fromisoformat(date)
        except ValueError:
            raise HTTPException(status_code=400, detail="Pass date as yyyy-mm-dd")

        try:
            dishes = app.state.menu.get_menu(day)
        except DateRangeError:
            raise HTTPException(status_code=400, detail="Date either too far in the past or too far in the future")
        except NotYetPublishedError:
            raise HTTPException(status_code=404, detail=f"No menu published for {day} yet")
        except MenuError as exc:
            log.error("get_menu(%s) failed: %s", day, exc)
            raise HTTPException(status_code=500, detail="Failed to load menu")
        return [d.to_dict() for d in dishes]

    return app


def main():
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(levelname)s\t%(asctime)s %(name)s: %(message)s",
    )
    host, port = parse_listen(settings.listen)
    log.info("starting server on %s:%d", host, port)
    uvicorn.run(create_app(settings), host=host, port=port)


if __name__ == "__main__":
    main()
