"""
Test the directive mini-language: "$path$option..." and "?var$option..."
strings found at the leaves of a prototype.
"""

import pytest

from sparql_transformer.directive import (
    BindMode,
    parse_directive,
    resolve_bestlang,
    sparql_var,
)
from sparql_transformer.errors import LanguageResolutionError


def test_generate_directive_with_options():
    """'$' starts a new pattern; options follow, each after a '$'."""
    d = parse_directive("$rdfs:label$required$lang:en")

    assert d.mode == BindMode.GENERATE
    assert d.path == "rdfs:label"
    assert d.variable is None, "no var: option, the compiler generates one"
    assert d.required is True
    assert d.lang == "en"
    assert d.emits_pattern


def test_existing_variable():
    """'?' binds to a variable the query already names; no pattern is emitted."""
    d = parse_directive("?id")

    assert d.mode == BindMode.EXISTING
    assert d.path is None
    assert d.variable == "?id"
    assert not d.emits_pattern


def test_literals_are_not_directives():
    """Plain strings and non-strings pass through untouched."""
    for value in ("City", "dbo:City", "", 42, None, {"a": 1}, ["$x"]):
        assert parse_directive(value) is None, f"{value!r} should not parse"


def test_var_option_names_the_variable():
    assert parse_directive("$dbo:genre$var:genre").variable == "?genre"
    assert parse_directive("$dbo:genre$var:?genre").variable == "?genre"
    assert parse_directive("?id$var:other").variable == "?other"


def test_aggregates_first_match_wins():
    """sample/count/sum/min/max/avg are mutually exclusive."""
    d = parse_directive("$dbo:member$count$sum$distinct")
    assert d.aggregate == "count"
    assert d.distinct is True

    assert parse_directive("$rdfs:label$sample").aggregate == "sample"
    assert parse_directive("$rdfs:label").aggregate is None


def test_keyed_options():
    d = parse_directive("$rdfs:label$langTag:hide$accept:string$bestlang:it")
    assert d.lang_tag == "hide"
    assert d.accept == "string"
    assert d.bestlang == "it"

    bare = parse_directive("$rdfs:label$bestlang$lang")
    assert bare.bestlang == "", "bare bestlang inherits the root $lang"
    assert bare.lang == ""


def test_boolean_flags():
    d = parse_directive("$dbo:genre$list$reverse$prevRoot$anchor")
    assert d.as_list
    assert d.reverse
    assert d.prev_root
    assert d.anchor


def test_unknown_options_are_preserved():
    d = parse_directive("$rdfs:label$whatever$foo:bar")
    assert d.extra == ("whatever", "foo:bar")


def test_to_tuple():
    mode, path, variable, flags = parse_directive("$rdfs:label$required$lang:en").to_tuple()
    assert mode == BindMode.GENERATE
    assert path == "rdfs:label"
    assert variable is None
    assert flags == {"required": True, "lang": "en"}


def test_resolve_bestlang():
    assert resolve_bestlang(parse_directive("$rdfs:label$bestlang:it"), "en") == "it"
    assert resolve_bestlang(parse_directive("$rdfs:label$bestlang"), "en") == "en"

    with pytest.raises(LanguageResolutionError):
        resolve_bestlang(parse_directive("$rdfs:label$bestlang"), None)


def test_sparql_var():
    assert sparql_var("id") == "?id"
    assert sparql_var("?id") == "?id"
