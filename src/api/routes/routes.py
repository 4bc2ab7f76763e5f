from datetime import datetime, timezone
import os

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates


router = APIRouter()
templates = Jinja2Templates(
    directory=os.path.join(os.path.dirname(__file__), "..", "..", "templates")
)

SUPPORT_EMAIL = os.getenv("SUPPORT_EMAIL", "supporto@seaboo.it")


@router.get("/api/health")
def health():
    return {"status": "OK", "message": "SeaBoo server is running!"}


@router.get("/api/test")
def api_test():
    return {
        "message": "API is working",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": os.getenv("APP_ENV", "development"),
    }


@router.get("/supporto", response_class=HTMLResponse)
def support_page(request: Request):
    return templates.TemplateResponse(
        request,
        "support.html",
        {
            "support_email": SUPPORT_EMAIL,
            "year": datetime.now(timezone.utc).year,
        },
    )
