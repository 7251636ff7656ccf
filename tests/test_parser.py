"""Tests for the method descriptor parser."""

from __future__ import annotations

import pytest

from ldap_query import (
    Comparison,
    Conjunction,
    DescriptorParser,
    Disjunction,
    EntityMetadata,
    FilterOperator,
    Negation,
    Parameter,
    ParseError,
    UnsupportedFeatureError,
    build_entity_metadata,
    parse,
)


@pytest.fixture
def parser(person: EntityMetadata) -> DescriptorParser:
    return DescriptorParser(person)


# -- Tree shapes -------------------------------------------------------------


def test_single_property_is_equality(parser: DescriptorParser):
    parsed = parser.parse("findByLastname")
    assert parsed.tree == Comparison(
        "lastname", FilterOperator.EQUALS, Parameter(0, "lastname")
    )
    assert parsed.arity == 1


def test_and_builds_flat_conjunction(parser: DescriptorParser):
    parsed = parser.parse("findByLastnameAndFirstnameAndPhone")
    assert isinstance(parsed.tree, Conjunction)
    assert [c.property for c in parsed.tree.children] == [
        "lastname",
        "firstname",
        "phone",
    ]
    assert [p.index for p in parsed.parameters] == [0, 1, 2]


def test_or_builds_disjunction(parser: DescriptorParser):
    parsed = parser.parse("findByLastnameOrFirstname")
    assert parsed.tree == Disjunction(
        (
            Comparison("lastname", FilterOperator.EQUALS, Parameter(0, "lastname")),
            Comparison("firstname", FilterOperator.EQUALS, Parameter(1, "firstname")),
        )
    )


def test_null_checks_consume_no_parameter(parser: DescriptorParser):
    parsed = parser.parse("findByFirstnameIsNullAndLastname")
    first, second = parsed.tree.children
    assert first == Comparison("firstname", FilterOperator.IS_NULL)
    assert second.value == Parameter(0, "lastname")
    assert parsed.arity == 1


def test_not_is_negated_equality(parser: DescriptorParser):
    parsed = parser.parse("findByLastnameNot")
    assert parsed.tree == Negation(
        Comparison("lastname", FilterOperator.EQUALS, Parameter(0, "lastname"))
    )


def test_not_like_is_negated_prefix_match(parser: DescriptorParser):
    parsed = parser.parse("findByFirstnameNotLike")
    assert parsed.tree == Negation(
        Comparison(
            "firstname", FilterOperator.STARTING_WITH, Parameter(0, "firstname")
        )
    )


@pytest.mark.parametrize(
    ("keyword", "operator"),
    [
        ("", FilterOperator.EQUALS),
        ("Is", FilterOperator.EQUALS),
        ("Equals", FilterOperator.EQUALS),
        ("LessThanEqual", FilterOperator.LESS_THAN_EQUAL),
        ("IsLessThanEqual", FilterOperator.LESS_THAN_EQUAL),
        ("GreaterThanEqual", FilterOperator.GREATER_THAN_EQUAL),
        ("IsGreaterThanEqual", FilterOperator.GREATER_THAN_EQUAL),
        ("Like", FilterOperator.LIKE),
        ("IsLike", FilterOperator.LIKE),
        ("StartingWith", FilterOperator.STARTING_WITH),
        ("StartsWith", FilterOperator.STARTING_WITH),
        ("EndingWith", FilterOperator.ENDING_WITH),
        ("EndsWith", FilterOperator.ENDING_WITH),
        ("Containing", FilterOperator.CONTAINING),
        ("Contains", FilterOperator.CONTAINING),
        ("IsNull", FilterOperator.IS_NULL),
        ("Null", FilterOperator.IS_NULL),
        ("IsNotNull", FilterOperator.IS_NOT_NULL),
        ("NotNull", FilterOperator.IS_NOT_NULL),
    ],
)
def test_keyword_aliases(parser: DescriptorParser, keyword, operator):
    parsed = parser.parse(f"findByEmployeeNumber{keyword}")
    assert isinstance(parsed.tree, Comparison)
    assert parsed.tree.property == "employeeNumber"
    assert parsed.tree.operator is operator


def test_is_not_is_negated_equality(parser: DescriptorParser):
    parsed = parser.parse("findByFirstnameIsNot")
    assert isinstance(parsed.tree, Negation)
    assert parsed.tree.child.operator is FilterOperator.EQUALS


def test_parsing_is_deterministic(person: EntityMetadata):
    descriptor = "findByLastnameAndFirstnameStartingWith"
    assert parse(descriptor, person) == parse(descriptor, person)


@pytest.mark.parametrize(
    "descriptor",
    [
        "findAllByLastname",
        "findPeopleByLastname",
        "readByLastname",
        "getByLastname",
        "queryByLastname",
        "searchByLastname",
        "streamByLastname",
    ],
)
def test_subject_prefixes(parser: DescriptorParser, descriptor):
    parsed = parser.parse(descriptor)
    assert parsed.tree.property == "lastname"


# -- Property matching -------------------------------------------------------


@pytest.fixture
def code_metadata() -> EntityMetadata:
    return build_entity_metadata(
        {
            "name": "Item",
            "object_classes": ["item"],
            "properties": [
                {"name": "dn", "identifier": True, "value_type": "dn"},
                {"name": "code"},
                {"name": "codeNo"},
            ],
        }
    )


def test_longest_property_wins(code_metadata: EntityMetadata):
    parsed = parse("findByCodeNo", code_metadata)
    assert parsed.tree.property == "codeNo"
    assert parsed.tree.operator is FilterOperator.EQUALS


def test_backtracks_to_shorter_property(code_metadata: EntityMetadata):
    parsed = parse("findByCodeNotNull", code_metadata)
    assert parsed.tree == Comparison("code", FilterOperator.IS_NOT_NULL)


def test_longest_keyword_wins(code_metadata: EntityMetadata):
    parsed = parse("findByCodeNoIsNotNull", code_metadata)
    assert parsed.tree == Comparison("codeNo", FilterOperator.IS_NOT_NULL)


def test_camel_case_property_names(parser: DescriptorParser):
    parsed = parser.parse("findByEmployeeNumberGreaterThanEqual")
    assert parsed.tree.property == "employeeNumber"
    assert parsed.tree.operator is FilterOperator.GREATER_THAN_EQUAL


# -- Errors ------------------------------------------------------------------


def test_unknown_property_suggests_close_match(parser: DescriptorParser):
    with pytest.raises(ParseError) as exc_info:
        parser.parse("findByLastnme")
    assert exc_info.value.suggestions[0] == "lastname"
    assert "Did you mean: lastname" in str(exc_info.value)


def test_unknown_property_suggestion_ignores_keyword(parser: DescriptorParser):
    with pytest.raises(ParseError) as exc_info:
        parser.parse("findByFirstnmeStartingWith")
    assert exc_info.value.fragment == "Firstnme"
    assert "firstname" in exc_info.value.suggestions


def test_mixed_and_or_raises(parser: DescriptorParser):
    with pytest.raises(ParseError, match="mixing 'And' and 'Or'"):
        parser.parse("findByLastnameAndFirstnameOrPhone")


def test_unsupported_keyword_raises(parser: DescriptorParser):
    with pytest.raises(ParseError, match="'LessThan' on 'employeeNumber'"):
        parser.parse("findByEmployeeNumberLessThan")


def test_unrecognized_keyword_raises(parser: DescriptorParser):
    with pytest.raises(ParseError, match="unrecognized keyword 'Sometimes'"):
        parser.parse("findByLastnameSometimes")


def test_transient_property_is_not_queryable(parser: DescriptorParser):
    with pytest.raises(ParseError, match="'password' is transient"):
        parser.parse("findByPassword")


def test_identifier_is_not_queryable(parser: DescriptorParser):
    with pytest.raises(ParseError, match="'dn' is the identifier"):
        parser.parse("findByDn")


def test_trailing_combinator_raises(parser: DescriptorParser):
    with pytest.raises(ParseError):
        parser.parse("findByLastnameAnd")


@pytest.mark.parametrize("descriptor", ["deleteByLastname", "findLastname"])
def test_unknown_verb_raises(parser: DescriptorParser, descriptor):
    with pytest.raises(ParseError, match="findBy<Property>"):
        parser.parse(descriptor)


def test_empty_criteria_raises(parser: DescriptorParser):
    with pytest.raises(ParseError, match="no criteria"):
        parser.parse("findBy")


def test_order_by_is_unsupported(parser: DescriptorParser):
    with pytest.raises(UnsupportedFeatureError) as exc_info:
        parser.parse("findByLastnameOrderByFirstnameAsc")
    assert exc_info.value.feature == "sorting"


@pytest.mark.parametrize(
    "descriptor", ["findFirstByLastname", "findTop10ByLastname", "findTopByLastname"]
)
def test_limiting_is_unsupported(parser: DescriptorParser, descriptor):
    with pytest.raises(UnsupportedFeatureError) as exc_info:
        parser.parse(descriptor)
    assert exc_info.value.feature == "limit"


def test_distinct_is_unsupported(parser: DescriptorParser):
    with pytest.raises(UnsupportedFeatureError) as exc_info:
        parser.parse("findDistinctByLastname")
    assert exc_info.value.feature == "distinct"
