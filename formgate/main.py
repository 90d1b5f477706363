"""formgate - request body ingestion for Robyn."""

from pydantic import BaseModel, EmailStr, Field
from robyn import Robyn

from formgate.core.logger import LogIcon, logger
from formgate.core.router import Router
from formgate.core.settings import settings as st
from formgate.forms.config import ParseConfig
from formgate.models.core import UploadedFiles

app = Robyn(__file__)


class ContactForm(BaseModel):
    """Contact form with an optional avatar upload."""

    name: str = Field(min_length=1)
    email: EmailStr
    tags: list[str] = []
    avatar: str | None = None


form_config = ParseConfig.from_settings(
    st,
    field_error_messages={"name": "Name is required", "email": "Invalid email address"},
)

forms_router = Router(__file__, prefix="/forms", form_config=form_config)


@forms_router.post("/contact")
async def submit_contact(form: ContactForm, files: UploadedFiles):
    """Accept a contact form as JSON, url-encoded or multipart body."""
    return {
        "contact": form.model_dump(),
        "files": [
            {"field": field, "filename": upload.filename, "size": upload.size, "sha256": upload.hash}
            for field, upload in files.items()
        ],
    }


app.include_router(forms_router)


def main() -> None:
    logger.info(
        f"Starting {st.API_NAME} {st.API_VERSION}",
        icon=LogIcon.START,
        description=st.API_DESCRIPTION,
        url=st.api_url,
        allowed_mime_types=sorted(form_config.allowed_mime_types),
    )
    app.start(host=st.API_HOST, port=st.API_PORT)


if __name__ == "__main__":
    main()
