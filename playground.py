"""
sparql-transformer playground — Interactive web UI for trying prototype documents.

Run with: uv run python playground.py
"""

import json
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from sparql_transformer.compiler import compile_document
from sparql_transformer.config import DEFAULT_ENDPOINT, Options, configure_logging
from sparql_transformer.runner import execute

app = FastAPI()
templates = Jinja2Templates(directory=Path(__file__).parent / "templates")
configure_logging(Options.from_env())

EXAMPLE_PROTO = {
    "proto": {
        "id": "?id",
        "name": "$rdfs:label$required$lang:en",
        "population": "$dbo:populationTotal",
        "country": {
            "id": "$dbo:country",
            "name": "$rdfs:label$lang:en",
        },
    },
    "$where": ["?id a dbo:City"],
    "$limit": 10,
}

EXAMPLE_JSONLD = {
    "@context": "http://schema.org/",
    "@graph": [{
        "@type": "MusicGroup",
        "@id": "?id",
        "name": "$foaf:name$required$lang:en",
        "genre": {
            "@id": "$dbo:genre$list",
            "name": "$rdfs:label$lang:en",
        },
    }],
    "$where": ["?id a dbo:Band", "?id dbo:genre dbr:Grunge"],
    "$limit": 20,
    "$limitMode": "library",
}


class CompileRequest(BaseModel):
    document: dict[str, Any]


class TransformRequest(BaseModel):
    document: dict[str, Any]
    endpoint: str = DEFAULT_ENDPOINT
    lang_tag: str = "show"
    params: dict[str, str] = {}
    debug: bool = False


@app.post("/api/compile")
def compile_prototype(req: CompileRequest):
    try:
        compiled = compile_document(req.document)
        return {"ok": True, **compiled.to_dict()}
    except Exception as e:
        return {"ok": False, "error": f"{type(e).__name__}: {e}"}


@app.post("/api/transform")
def transform_prototype(req: TransformRequest):
    try:
        options = Options(
            endpoint=req.endpoint,
            lang_tag=req.lang_tag,
            params=req.params,
            debug=req.debug,
        )
        report = execute(req.document, options)
        return {"ok": True, "report": report.to_dict()}
    except Exception as e:
        return {"ok": False, "error": f"{type(e).__name__}: {e}"}


@app.get("/", response_class=HTMLResponse)
def index(request: Request, endpoint: Optional[str] = None):
    return templates.TemplateResponse(
        request,
        "playground.html",
        {
            "endpoint": endpoint or DEFAULT_ENDPOINT,
            "example_proto": json.dumps(EXAMPLE_PROTO, indent=2),
            "example_jsonld": json.dumps(EXAMPLE_JSONLD, indent=2),
        },
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8420)
