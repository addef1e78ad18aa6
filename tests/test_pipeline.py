"""
Test the full pipeline: prototype -> SPARQL -> (fake endpoint) -> merged output.

No live endpoint is needed; the query function is replaced by a fake that
returns canned SPARQL JSON results from examples/responses/.
"""

import json
import logging

import pytest

from sparql_transformer.config import Options, configure_logging
from sparql_transformer.errors import MalformedInputError, MalformedResponseError
from sparql_transformer.runner import dry_run, execute, load_document, transform

NIRVANA = "http://dbpedia.org/resource/Nirvana_(band)"
SOUNDGARDEN = "http://dbpedia.org/resource/Soundgarden"
MUDHONEY = "http://dbpedia.org/resource/Mudhoney"
GRUNGE = "http://dbpedia.org/resource/Grunge"
PUNK = "http://dbpedia.org/resource/Punk_rock"


def en(value):
    return {"language": "en", "value": value}


def rows(*bindings):
    return {"head": {"vars": []}, "results": {"bindings": list(bindings)}}


def test_label_scenario(fake_endpoint):
    """Two rows for the same ?id with different labels become one entry."""
    endpoint = fake_endpoint(rows(
        {"id": {"type": "uri", "value": "http://dbpedia.org/resource/Rome"},
         "v1": {"type": "literal", "value": "Roma"}},
        {"id": {"type": "uri", "value": "http://dbpedia.org/resource/Rome"},
         "v1": {"type": "literal", "value": "Rome"}},
    ))
    document = {
        "proto": {"id": "?id", "name": "$rdfs:label$required"},
        "$where": ["?id a dbo:City"],
        "$limit": 2,
    }
    output = transform(document, Options(query_function=endpoint))

    assert len(endpoint.queries) == 1
    assert "SELECT DISTINCT ?id ?v1" in endpoint.queries[0]
    assert output == [{"id": "http://dbpedia.org/resource/Rome", "name": ["Roma", "Rome"]}]


def test_band(load_example, fake_endpoint):
    endpoint = fake_endpoint(load_example("responses/band.json"))
    output = transform(load_example("band.json"), Options(query_function=endpoint))
    print(f"\n{json.dumps(output, indent=2)}")

    assert output == [
        {
            "id": NIRVANA,
            "name": en("Nirvana"),
            "genres": [
                {"id": GRUNGE, "label": en("Grunge")},
                {"id": PUNK, "label": en("Punk rock")},
            ],
        },
        {
            "id": SOUNDGARDEN,
            "name": en("Soundgarden"),
            "genres": [{"id": GRUNGE, "label": en("Grunge")}],
        },
        {"id": MUDHONEY, "name": en("Mudhoney")},
    ]


def test_library_limit(load_example, fake_endpoint):
    """$limitMode library paginates the merged entries, not the raw rows."""
    endpoint = fake_endpoint(load_example("responses/band.json"))
    output = transform(load_example("band.liblimit.json"), Options(query_function=endpoint))

    assert "LIMIT" not in endpoint.queries[0]
    assert [entry["id"] for entry in output] == [SOUNDGARDEN]


def test_jsonld_envelope(load_example, fake_endpoint):
    endpoint = fake_endpoint(load_example("responses/city.region.list.ld.json"))
    output = transform(load_example("city.region.list.ld.json"), Options(query_function=endpoint))
    print(f"\n{json.dumps(output, indent=2)}")

    assert output["@context"] == "http://schema.org/"
    rome, florence = output["@graph"]

    assert rome == {
        "@type": "City",
        "@id": "http://dbpedia.org/resource/Rome",
        "name": [
            {"@language": "it", "@value": "Roma"},
            {"@language": "en", "@value": "Rome"},
        ],
        "image": "http://commons.wikimedia.org/wiki/Special:FilePath/Rome.jpg",
        "containedInPlace": {
            "@id": "http://dbpedia.org/resource/Lazio",
            "name": {"@language": "it", "@value": "Lazio"},
        },
        "country": "http://dbpedia.org/resource/Italy",
    }
    assert florence["containedInPlace"] == {"@id": "http://dbpedia.org/resource/Tuscany"}
    assert "country" not in florence


def test_context_option_overrides_document(load_example, fake_endpoint):
    endpoint = fake_endpoint(rows())
    output = transform(
        load_example("city.region.list.ld.json"),
        Options(query_function=endpoint, context={"@vocab": "http://example.org/"}),
    )
    assert output == {"@context": {"@vocab": "http://example.org/"}, "@graph": []}


def test_document_lang_tag_wins(fake_endpoint):
    endpoint = fake_endpoint(rows(
        {"id": {"type": "uri", "value": "x"},
         "v1": {"type": "literal", "xml:lang": "en", "value": "Rome"}},
    ))
    document = {"proto": {"id": "?id", "name": "$rdfs:label"}, "$langTag": "hide"}

    assert transform(document, Options(query_function=endpoint, lang_tag="show")) == [
        {"id": "x", "name": "Rome"},
    ]


def test_params_are_forwarded(fake_endpoint):
    endpoint = fake_endpoint(rows())
    transform({"proto": {"id": "?id"}}, Options(query_function=endpoint, params={"timeout": "5000"}))
    assert endpoint.params == [{"timeout": "5000"}]


def test_execution_errors_propagate_unchanged():
    error = RuntimeError("endpoint down")

    def failing(query, params=None):
        raise error

    with pytest.raises(RuntimeError) as excinfo:
        transform({"proto": {"id": "?id"}}, Options(query_function=failing))
    assert excinfo.value is error


def test_malformed_response(fake_endpoint):
    with pytest.raises(MalformedResponseError):
        transform({"proto": {"id": "?id"}}, Options(query_function=fake_endpoint({"boolean": True})))


def test_execute_report(load_example, fake_endpoint):
    endpoint = fake_endpoint(load_example("responses/band.json"))
    report = execute(load_example("band.json"), Options(query_function=endpoint))

    assert report.row_count == 4
    assert report.entry_count == 3
    assert report.endpoint is None
    assert json.loads(report.to_json())["query"] == report.query


def test_dry_run(examples_dir):
    """dry_run accepts a path and never calls an endpoint."""
    query = dry_run(examples_dir / "city.list.json")
    print(f"\n{query}")
    assert query.startswith("SELECT DISTINCT ?id ?v1 ?v2")


def test_load_document(examples_dir):
    path = examples_dir / "band.json"
    from_path = load_document(path)
    assert load_document(str(path)) == from_path
    assert load_document(path.read_text()) == from_path
    assert load_document(from_path) is from_path

    with pytest.raises(MalformedInputError):
        load_document("{not json")
    with pytest.raises(MalformedInputError):
        load_document(42)


def test_options_from_env():
    options = Options.from_env(
        {"DEBUG_LEVEL": "verbose", "SPARQL_ENDPOINT": "https://query.wikidata.org/sparql"},
        lang_tag="hide",
    )
    assert options.log_level == "verbose"
    assert options.level == logging.DEBUG
    assert options.endpoint == "https://query.wikidata.org/sparql"
    assert options.lang_tag == "hide"

    assert Options.from_env({}).endpoint == "http://dbpedia.org/sparql"
    assert Options(debug=True, log_level="error").level == logging.DEBUG

    with pytest.raises(ValueError):
        Options(log_level="loud").level


def test_configure_logging():
    logger = configure_logging(Options(log_level="warn"))
    assert logger.name == "sparql_transformer"
    assert logger.level == logging.WARNING
    configure_logging(Options(log_level="log"))
    assert logger.level == logging.INFO
    logger.setLevel(logging.NOTSET)


def test_ill_typed_row_does_not_abort(fake_endpoint):
    endpoint = fake_endpoint(rows(
        {"id": {"type": "uri", "value": "x"},
         "v1": {"type": "literal", "datatype": "http://www.w3.org/2001/XMLSchema#integer",
                "value": "1.5E3"}},
        {"id": {"type": "uri", "value": "y"},
         "v1": {"type": "literal", "datatype": "http://www.w3.org/2001/XMLSchema#integer",
                "value": "7"}},
    ))
    output = transform({"proto": {"id": "?id", "n": "$dbo:n"}}, Options(query_function=endpoint))
    assert output == [{"id": "x", "n": "1.5E3"}, {"id": "y", "n": 7}]
