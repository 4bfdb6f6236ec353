from __future__ import annotations

import base64
import json
import logging
import mimetypes
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer

from .models.config import EngineConfig, InputType, VerdictMode
from .models.results import AnalysisRequest
from .modules.input_normalizer import NoUsableInputError
from .pipeline.runner import run_analysis_sync
from .reporting.markdown import build_summary

app = typer.Typer(add_completion=False)
logger = logging.getLogger(__name__)


RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "time": datetime.now(timezone.utc).isoformat(),
        }
        for key, value in record.__dict__.items():
            if key not in RECORD_ATTRS and key not in payload:
                payload[key] = value
        return json.dumps(payload, default=str)


def setup_logging() -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=logging.INFO, handlers=[handler])


def image_to_data_url(path: str) -> str:
    file_path = Path(path)
    mime_type = mimetypes.guess_type(file_path.name)[0] or "image/png"
    if not mime_type.startswith("image/"):
        raise typer.BadParameter(f"{path} is not an image file", param_hint="--image")
    encoded = base64.b64encode(file_path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


@app.command()
def scan(
    text: Optional[str] = typer.Option(None, "--text", help="Free text to analyze."),
    url: Optional[str] = typer.Option(None, "--url", help="URL to analyze."),
    page_url: Optional[str] = typer.Option(None, "--page-url", help="Page the resources were loaded from."),
    resource: Optional[list[str]] = typer.Option(None, "--resource", help="Resource URL loaded by the page (repeatable)."),
    image: Optional[str] = typer.Option(None, "--image", help="Path to a screenshot to OCR and analyze."),
    input_type: Optional[InputType] = typer.Option(None, "--input-type"),
    verdict_mode: VerdictMode = typer.Option(VerdictMode.protect, "--verdict-mode"),
    output_format: str = typer.Option("json", "--format", help="json or markdown"),
    use_model: bool = typer.Option(False, "--use-model", envvar="PROTECT_USE_MODEL"),
    ocr_timeout: float = typer.Option(9.0, "--ocr-timeout", envvar="PROTECT_OCR_TIMEOUT_SECONDS"),
    model_timeout: float = typer.Option(9.0, "--model-timeout", envvar="PROTECT_MODEL_TIMEOUT_SECONDS"),
    openai_api_key: Optional[str] = typer.Option(None, "--openai-api-key", envvar="OPENAI_API_KEY"),
    openai_base_url: str = typer.Option("https://api.openai.com/v1", "--openai-base-url", envvar="OPENAI_BASE_URL"),
    openai_vision_model: str = typer.Option("gpt-4.1-mini", "--openai-vision-model", envvar="OPENAI_VISION_MODEL"),
    gemini_api_key: Optional[str] = typer.Option(None, "--gemini-api-key", envvar="GEMINI_API_KEY"),
    gemini_model: str = typer.Option("gemini-1.5-flash", "--gemini-model", envvar="GEMINI_MODEL"),
    tracker_list: Optional[str] = typer.Option(None, "--tracker-list", help="JSON tracker directory override."),
) -> None:
    """Score text, a URL, page resources, or a screenshot for scam and privacy risk."""
    setup_logging()
    if output_format not in ("json", "markdown"):
        typer.echo("--format must be json or markdown", err=True)
        raise typer.Exit(2)

    content = text
    if image:
        content = image_to_data_url(image)
        resolved_type = InputType.image
    elif input_type:
        resolved_type = input_type
    else:
        resolved_type = InputType.url if url and not text else InputType.text

    config = EngineConfig(
        verdict_mode=verdict_mode,
        ocr_timeout_seconds=ocr_timeout,
        model_timeout_seconds=model_timeout,
        use_model=use_model,
        openai_api_key=openai_api_key,
        openai_base_url=openai_base_url,
        openai_vision_model=openai_vision_model,
        gemini_api_key=gemini_api_key,
        gemini_model=gemini_model,
        tracker_list_path=tracker_list,
    )
    logger.info("scan configured: %s", json.dumps(config.redacted()))
    request = AnalysisRequest(
        input_type=resolved_type,
        content=content,
        text=text if image else None,
        url=url,
        page_url=page_url,
        resources=list(resource or []),
    )

    try:
        result = run_analysis_sync(request, config)
    except NoUsableInputError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(2)

    payload = result.model_dump(mode="json")
    if output_format == "markdown":
        typer.echo(build_summary(payload))
    else:
        typer.echo(json.dumps(payload, indent=2))


@app.command()
def validate(input: str = typer.Option(..., "--input")) -> None:
    """Validate a saved result JSON structure."""
    setup_logging()
    try:
        data = json.loads(Path(input).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        typer.echo(f"invalid JSON: {exc}", err=True)
        raise typer.Exit(1)

    required = ["risk_score", "verdict", "summary", "sub_scores"]
    missing = [field for field in required if field not in data]
    if missing:
        typer.echo(f"missing fields: {', '.join(missing)}", err=True)
        raise typer.Exit(1)

    score = data["risk_score"]
    if not isinstance(score, int) or not 0 <= score <= 100:
        typer.echo("risk_score must be an integer between 0 and 100", err=True)
        raise typer.Exit(1)

    typer.echo("valid")


if __name__ == "__main__":
    app()
