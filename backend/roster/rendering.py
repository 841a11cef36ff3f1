"""
HTML rendering for the roster pages.

PageRenderer is built once by the application factory, kept on
app.state, and handed to route handlers through get_renderer().
"""

import os
from typing import List, Optional
from fastapi import Request
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

STUDENT_LIST_TEMPLATE = "students.html"
STUDENT_FORM_TEMPLATE = "student_form.html"
UNSUPPORTED_TEMPLATE = "browser_not_supported.html"

REQUIRED_TEMPLATES = [
    "base.html", STUDENT_LIST_TEMPLATE, STUDENT_FORM_TEMPLATE, UNSUPPORTED_TEMPLATE
]


# ── Page view-models ─────────────────────────────────────────

class StudentView(BaseModel):
    stuid: str
    name: str
    submission_status: bool
    submitted_ago: str


class ActiveTab(BaseModel):
    all_students: bool = False
    submitted: bool = False


class Action(BaseModel):
    """A bulk action button posting the checked students to link."""
    icon: str
    link: str
    label: str


class StudentPage(BaseModel):
    title: str
    active_tab: ActiveTab
    actions: List[Action]
    students: List[StudentView]
    page_message: str = ""


class StudentForm(BaseModel):
    original_stuid: str = ""
    stuid: str = ""
    name: str = ""
    cancel_url: str = "/stulist/"
    form_error: str = ""

    @property
    def is_new(self) -> bool:
        return not self.original_stuid


class PageRenderer:
    """Loaded page templates for the roster UI."""

    def __init__(self, templates_path: str):
        missing = [
            name for name in REQUIRED_TEMPLATES
            if not os.path.isfile(os.path.join(templates_path, name))
        ]
        if missing:
            raise FileNotFoundError(
                "Missing templates in {}: {}".format(templates_path, ", ".join(missing))
            )
        self.templates_path = templates_path
        self.templates = Jinja2Templates(directory=templates_path)

    def student_list(self, request: Request, page: StudentPage):
        return self.templates.TemplateResponse(
            request, STUDENT_LIST_TEMPLATE, {"page": page}
        )

    def student_form(self, request: Request, form: StudentForm,
                     status_code: int = 200):
        return self.templates.TemplateResponse(
            request, STUDENT_FORM_TEMPLATE, {"form": form}, status_code=status_code
        )

    def unsupported_browser(self, request: Request, message: Optional[str] = None):
        return self.templates.TemplateResponse(
            request, UNSUPPORTED_TEMPLATE, {"message": message}
        )


def get_renderer(request: Request) -> PageRenderer:
    """FastAPI dependency returning the app's PageRenderer."""
    return request.app.state.renderer
