"""Router with automatic form parsing, validation and response handling."""

import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any

import orjson
from pydantic import BaseModel
from robyn import Request, Response, SubRouter, status_codes
from robyn.robyn import HttpMethod

from formgate.core.logger import LogIcon, logger
from formgate.core.settings import settings as st
from formgate.forms.config import ParseConfig
from formgate.forms.exceptions import FormParserError
from formgate.forms.parser import FormParser
from formgate.forms.responder import error_response
from formgate.models.core import ParseResult, UploadedFiles


class _FilesOnly(BaseModel):
    """Record for handlers that only take uploaded files."""


def parse_endpoint_signature(sig: inspect.Signature) -> tuple[dict[str, type[BaseModel]], set[str]]:
    """Parse function signature for record and file parameters."""
    records: dict[str, type[BaseModel]] = {}
    file_params: set[str] = set()

    for name, param in sig.parameters.items():
        annotation = param.annotation

        match annotation:
            case _ if annotation is UploadedFiles:
                file_params.add(name)
            case type() if issubclass(annotation, BaseModel):
                records[name] = annotation

    if len(records) > 1:
        raise TypeError(f"Only one record parameter is supported, got: {', '.join(records)}")
    return records, file_params


def parse_request_form(
    parser: FormParser,
    records: dict[str, type[BaseModel]],
    file_params: set[str],
    request: Request,
    kwargs: dict[str, Any],
) -> Response | None:
    """Parse the request body into record and file kwargs.

    Returns the error response to send when ingestion fails.
    """
    if not records and not file_params:
        return None

    model = next(iter(records.values()), None)
    try:
        result: ParseResult = parser.parse(request, model or _FilesOnly)
    except FormParserError as ex:
        logger.warning(
            "Request body rejected",
            icon=LogIcon.FORBIDDEN,
            path=getattr(request, "path", ""),
            error=type(ex).__name__,
            status=int(ex.status_code),
            detail=ex.detail,
        )
        return error_response(ex)

    for param_name in records:
        kwargs[param_name] = result.record
    for param_name in file_params:
        kwargs[param_name] = result.files
    return None


def parse_response(result: Any) -> Response:
    """Convert handler result to Response."""
    match result:
        case Response():
            return result
        case BaseModel():
            return Response(
                status_code=status_codes.HTTP_200_OK,
                headers={"content-type": "application/json"},
                description=result.model_dump_json(),
            )
        case dict() | list():
            return Response(
                status_code=status_codes.HTTP_200_OK,
                headers={"content-type": "application/json"},
                description=orjson.dumps(result).decode(),
            )
        case _:
            return Response(
                status_code=status_codes.HTTP_200_OK,
                headers={},
                description=str(result),
            )


HTTP_METHODS = (
    HttpMethod.GET,
    HttpMethod.POST,
    HttpMethod.PUT,
    HttpMethod.DELETE,
    HttpMethod.PATCH,
)


def wrap_form_handler(handler: Callable, parser: FormParser) -> Callable:
    """Wrap an async handler so its record/file parameters are filled from the body."""
    sig = inspect.signature(handler)
    records, file_params = parse_endpoint_signature(sig)
    has_request_param = "request" in sig.parameters

    @wraps(handler)
    async def wrapped_handler(request: Request, **h_kwargs):
        if error := parse_request_form(parser, records, file_params, request, h_kwargs):
            return error

        # Pass request to handler only if it declared it
        if has_request_param:
            h_kwargs["request"] = request

        result = await handler(**h_kwargs)
        return parse_response(result)

    # Build signature: always include request for Robyn injection
    new_params = [inspect.Parameter("request", inspect.Parameter.POSITIONAL_OR_KEYWORD, annotation=Request)]
    for name, param in sig.parameters.items():
        if name == "request" or name in records or name in file_params:
            continue
        new_params.append(param)

    wrapped_handler.__signature__ = sig.replace(parameters=new_params)  # type: ignore[attr-defined]
    return wrapped_handler


def _create_method_wrapper(original_method: Callable, parser: FormParser) -> Callable:
    @wraps(original_method)
    def method_wrapper(*args, **kwargs) -> Callable:
        decorator = original_method(*args, **kwargs)

        def handler_decorator(handler: Callable) -> Callable:
            return decorator(wrap_form_handler(handler, parser))

        return handler_decorator

    return method_wrapper


class Router(SubRouter):
    """Enhanced SubRouter that parses request bodies into pydantic records.

    Handlers declare a ``BaseModel`` parameter for the record and an
    ``UploadedFiles`` parameter for multipart uploads. Ingestion failures
    are answered before the handler runs.
    """

    def __init__(self, *args, form_config: ParseConfig | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.form_parser = FormParser(form_config or ParseConfig.from_settings(st))
        self._wrap_methods()

    def _wrap_methods(self) -> None:
        """Wrap body-carrying HTTP methods with parsing logic."""
        for method in HTTP_METHODS:
            method_name = str(method).split(".")[-1].lower()
            if hasattr(self, method_name):
                original_method = getattr(self, method_name)
                wrapped_method = _create_method_wrapper(original_method, self.form_parser)
                setattr(self, method_name, wrapped_method)
